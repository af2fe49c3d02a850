def test_import_eshara_package() -> None:
    import importlib

    module = importlib.import_module("eshara")
    assert module.__version__


def test_import_cli_without_side_effects() -> None:
    from eshara.presentation.cli import app

    assert callable(app.main)


def test_import_clock_no_side_effects() -> None:
    from datetime import timedelta

    from eshara.core.clock import ManualClock

    clock = ManualClock()
    start = clock.now()
    assert clock.advance(seconds=5) == start + timedelta(seconds=5)
