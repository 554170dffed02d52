from unittest.mock import patch

from photomirror import cli
from photomirror.exceptions import TransportError
from photomirror.lock import RunLock
from photomirror.syncer import SyncReport


def test_successful_run_exits_zero(tmp_path):
    with patch("photomirror.cli.run_sync", return_value=SyncReport(fetched=1)) as run:
        code = cli.main(["-p", str(tmp_path), "-s", str(tmp_path / "photos"), "-q", "10"])

    assert code == cli.EXIT_OK
    config = run.call_args.args[0]
    assert config.item_count_ceiling == 10
    assert config.storage_root == tmp_path / "photos"


def test_aborted_run_exits_one(tmp_path):
    report = SyncReport(error=TransportError("Error listing media items: 503"))
    with patch("photomirror.cli.run_sync", return_value=report):
        assert cli.main(["-p", str(tmp_path)]) == cli.EXIT_ABORTED


def test_held_lock_exits_quietly(tmp_path):
    other = RunLock(tmp_path / "sync.lock")
    assert other.acquire()
    try:
        with patch("photomirror.cli.run_sync") as run:
            code = cli.main(["-p", str(tmp_path)])
    finally:
        other.release()

    assert code == cli.EXIT_OK
    run.assert_not_called()


def test_bad_page_size_is_rejected(tmp_path):
    with patch("photomirror.cli.run_sync") as run:
        code = cli.main(["-p", str(tmp_path), "--page-size", "500"])

    assert code == cli.EXIT_BAD_CONFIG
    run.assert_not_called()


def test_clear_auth_is_passed_through(tmp_path):
    with patch("photomirror.cli.run_sync", return_value=SyncReport()) as run:
        cli.main(["-p", str(tmp_path), "--clear-auth", "--log-level", "debug"])

    assert run.call_args.kwargs["clear_auth"] is True


def test_malformed_user_config_is_rejected(tmp_path):
    (tmp_path / "sync_config.json").write_text("{not json")

    with patch("photomirror.cli.run_sync") as run:
        code = cli.main(["-p", str(tmp_path)])

    assert code == cli.EXIT_BAD_CONFIG
    run.assert_not_called()
