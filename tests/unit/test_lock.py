"""Unit tests for the start/stop session lock."""

import grp
import os
import pwd
from unittest.mock import patch

import pytest

from mc_service.core.lock import session_lock
from mc_service.utils.logging import LockError

CURRENT_USER = pwd.getpwuid(os.geteuid()).pw_name
CURRENT_GROUP = grp.getgrgid(os.getegid()).gr_name


class TestSessionLock:
    """Test session_lock()."""

    def test_creates_lock_file(self, tmp_path):
        lock_path = tmp_path / "sockets" / "minecraft_session.lock"

        with session_lock(lock_path, timeout=0) as held:
            assert held == lock_path
            assert lock_path.exists()

    def test_second_holder_times_out(self, tmp_path):
        lock_path = tmp_path / "session.lock"
        sleeps = []
        now = [0.0]

        def fake_sleep(seconds):
            sleeps.append(seconds)
            now[0] += seconds

        with session_lock(lock_path, timeout=0):
            with pytest.raises(LockError) as exc_info:
                with session_lock(
                    lock_path, timeout=1.0, sleep=fake_sleep, clock=lambda: now[0]
                ):
                    pass

        assert "in progress" in exc_info.value.message
        assert sleeps

    def test_released_after_block(self, tmp_path):
        lock_path = tmp_path / "session.lock"

        with session_lock(lock_path, timeout=0):
            pass
        with session_lock(lock_path, timeout=0):
            pass

    def test_released_on_error(self, tmp_path):
        lock_path = tmp_path / "session.lock"

        with pytest.raises(RuntimeError):
            with session_lock(lock_path, timeout=0):
                raise RuntimeError("boom")

        with session_lock(lock_path, timeout=0):
            pass

    def test_new_lock_file_is_group_writable(self, tmp_path):
        lock_path = tmp_path / "sockets" / "minecraft_session.lock"

        with session_lock(lock_path, 0, CURRENT_USER, CURRENT_GROUP):
            pass

        assert lock_path.stat().st_mode & 0o777 == 0o660
        assert lock_path.parent.stat().st_mode & 0o777 == 0o770
        assert lock_path.stat().st_gid == grp.getgrnam(CURRENT_GROUP).gr_gid

    def test_existing_lock_file_keeps_its_mode(self, tmp_path):
        lock_path = tmp_path / "minecraft_session.lock"
        lock_path.touch()
        os.chmod(lock_path, 0o640)

        with session_lock(lock_path, 0, CURRENT_USER, CURRENT_GROUP):
            pass

        assert lock_path.stat().st_mode & 0o777 == 0o640

    def test_unopenable_lock_file(self, tmp_path):
        lock_path = tmp_path / "minecraft_session.lock"

        with patch(
            "mc_service.core.lock.open",
            side_effect=PermissionError(13, "Permission denied"),
            create=True,
        ):
            with pytest.raises(LockError) as exc_info:
                with session_lock(lock_path, 0):
                    pass

        assert "Cannot open lock file" in exc_info.value.message
        assert "Permission denied" in exc_info.value.message

    @pytest.mark.skipif(os.geteuid() == 0, reason="root ignores file modes")
    def test_read_only_lock_file(self, tmp_path):
        lock_path = tmp_path / "minecraft_session.lock"
        lock_path.touch()
        os.chmod(lock_path, 0o444)

        with pytest.raises(LockError):
            with session_lock(lock_path, 0):
                pass
