"""Tests for storage_backend.py: BackendSelector states and app wiring."""

from __future__ import annotations


class TestBackendSelector:
    def test_starts_uninitialized(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        selector = BackendSelector(store_cls())
        assert selector.state is BackendState.UNINITIALIZED
        assert selector.use_document_store() is False
        assert selector.effective_mode == "CSV"

    def test_missing_uri_goes_csv_only(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        selector = BackendSelector(store_cls())
        assert selector.initialize("") is BackendState.CSV_ONLY

    def test_failed_connection_goes_csv_only(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        selector = BackendSelector(store_cls(connect=False))
        assert selector.initialize("mongodb://down") is BackendState.CSV_ONLY
        assert selector.effective_mode == "CSV"

    def test_index_failure_demotes_and_marks_unavailable(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        store = store_cls(index_ok=False)
        selector = BackendSelector(store)
        assert selector.initialize("mongodb://x") is BackendState.CSV_ONLY
        assert store.is_available() is False

    def test_successful_probe(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        selector = BackendSelector(store_cls())
        assert selector.initialize("mongodb://x") is BackendState.MONGO_ACTIVE
        assert selector.use_document_store() is True
        assert selector.effective_mode == "MongoDB"

    def test_initialize_runs_once(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        store = store_cls(connect=False)
        selector = BackendSelector(store)
        selector.initialize("mongodb://x")
        store.connect = True
        assert selector.initialize("mongodb://x") is BackendState.CSV_ONLY
        assert store.initialize_calls == 1

    def test_lost_connection_switches_mode_without_changing_state(self, store_cls):
        from storage_backend import BackendSelector, BackendState
        store = store_cls()
        selector = BackendSelector(store)
        selector.initialize("mongodb://x")
        store.mark_unavailable("network down")
        assert selector.state is BackendState.MONGO_ACTIVE
        assert selector.use_document_store() is False
        assert selector.effective_mode == "CSV"

    def test_status_in_csv_mode(self, store_cls):
        from storage_backend import BackendSelector
        selector = BackendSelector(store_cls())
        selector.initialize("")
        status = selector.status()
        assert status["success"] is False
        assert status["mode"] == "CSV"
        assert status["state"] == "CSV_ONLY"

    def test_status_in_mongo_mode(self, store_cls):
        from storage_backend import BackendSelector
        selector = BackendSelector(store_cls())
        selector.initialize("mongodb://x")
        status = selector.status()
        assert status["mode"] == "MongoDB"
        assert status["state"] == "MONGO_ACTIVE"


class TestInitStorage:
    def test_app_without_uri_runs_on_csv(self, app, data_dir):
        from storage_backend import BackendState
        repo = app.extensions["repository"]
        assert repo.selector.state is BackendState.CSV_ONLY
        assert repo.mode == "CSV"
        for name in ("terms.csv", "reports.csv", "biographies.csv", "attachments.csv"):
            assert (data_dir / name).exists()

    def test_injected_selector_is_used(self, mongo_app, fake_store):
        repo = mongo_app.extensions["repository"]
        assert repo.selector.document_store is fake_store
        assert repo.mode == "MongoDB"

    def test_get_repository_in_app_context(self, app):
        from storage_backend import get_repository
        with app.app_context():
            assert get_repository() is app.extensions["repository"]
