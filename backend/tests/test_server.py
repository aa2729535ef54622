import uvicorn

from apptracker import main
from apptracker.config import Settings


def test_run_serves_module_app_with_configured_address(monkeypatch):
    monkeypatch.setenv('HOST', '0.0.0.0')
    monkeypatch.setenv('PORT', '9123')
    calls = []
    monkeypatch.setattr(uvicorn, 'run', lambda app, **kwargs: calls.append((app, kwargs)))

    main.run(Settings())

    assert calls == [(main.app, {'host': '0.0.0.0', 'port': 9123})]


def test_module_app_uses_configured_database():
    # conftest points DATABASE_URL at an in-memory database before import
    assert str(main.app.state.engine.url) == 'sqlite://'
