import json
import os
import shlex
import sys

import pytest

import kv_cli
from kv_cli import format_table, main
from kvstore.store import FileStore

from conftest import FakeExecutor

KV = f"{shlex.quote(sys.executable)} {shlex.quote(os.path.abspath(kv_cli.__file__))}"


@pytest.fixture(autouse=True)
def posix_shell(monkeypatch):
    monkeypatch.setenv("KV_SHELL", "/bin/sh")


@pytest.fixture
def kv(store_path, capsys):
    """Run the CLI against the temp store; returns (exit, stdout, stderr)."""

    def run(*argv, executor=None):
        code = main(["--path", store_path, *argv], executor=executor)
        out, err = capsys.readouterr()
        return code, out, err

    return run


def read_lines(path):
    if not os.path.exists(path):
        return []
    with open(path) as f:
        return f.read().splitlines()


# ============================================================
# Keys
# ============================================================

class TestKeyCommands:
    def test_set_get(self, kv, store_path):
        assert kv("set", "editor", "vim") == (0, "", "")
        assert kv("get", "editor") == (0, "vim\n", "")
        assert FileStore(store_path).read()["keys"] == {"editor": "vim"}

    def test_set_joins_value_words(self, kv):
        kv("set", "greeting", "hello", "world")
        assert kv("get", "greeting")[1] == "hello world\n"

    def test_get_missing_prints_empty_line(self, kv, store_path):
        assert kv("get", "nope") == (0, "\n", "")
        assert not os.path.exists(store_path)

    def test_del_prints_previous(self, kv):
        kv("set", "k", "v")
        assert kv("del", "k") == (0, "v\n", "")
        assert kv("get", "k")[1] == "\n"

    def test_del_missing_is_not_an_error(self, kv):
        assert kv("del", "k") == (0, "\n", "")


# ============================================================
# Commands and hooks
# ============================================================

class TestCmdCommands:
    def test_run_echo(self, kv):
        kv("cmd", "add", "echo-cmd", "echo", "hi")
        assert kv("cmd", "run", "echo-cmd") == (0, "hi\n", "")

    def test_run_propagates_exit_status(self, kv):
        kv("cmd", "add", "fail", "exit 3")
        assert kv("cmd", "run", "fail")[0] == 3

    def test_run_unknown(self, kv):
        code, out, err = kv("cmd", "run", "nope")
        assert code == 1
        assert "Command 'nope' does not exist" in err

    def test_add_hook_unknown_command(self, kv, store_path):
        code, _, err = kv("cmd", "add-hook", "h2", "missing-cmd", "set", "k")
        assert code == 1
        assert "missing-cmd" in err
        assert FileStore(store_path).read()["hooks"] == {}

    def test_add_hook_duplicate(self, kv):
        kv("cmd", "add", "c", "true")
        assert kv("cmd", "add-hook", "h", "c", "set", "k")[0] == 0
        code, _, err = kv("cmd", "add-hook", "h", "c", "get", "k")
        assert code == 1
        assert "kv cmd del-hook h" in err

    def test_add_hook_invalid_trigger(self, kv):
        kv("cmd", "add", "c", "true")
        code, _, err = kv("cmd", "add-hook", "h", "c", "update", "k")
        assert code == 1
        assert "Unknown trigger" in err

    def test_del_hook(self, kv, store_path):
        kv("cmd", "add", "c", "true")
        kv("cmd", "add-hook", "h", "c", "del", "k")
        assert FileStore(store_path).read()["hooks"]["h"]["trigger"] == "delete"
        assert kv("cmd", "del-hook", "h")[0] == 0
        assert kv("cmd", "del-hook", "h")[0] == 1

    def test_del_command_in_use(self, kv, store_path):
        kv("cmd", "add", "c", "true")
        kv("cmd", "add-hook", "h", "c", "set", "k")
        code, _, err = kv("cmd", "del", "c")
        assert code == 1
        assert "used by hook(s): h" in err
        assert "c" in FileStore(store_path).read()["commands"]

    def test_missing_cmd_action_is_usage_error(self, kv):
        with pytest.raises(SystemExit) as exc_info:
            kv("cmd")
        assert exc_info.value.code == 2


class TestHooksEndToEnd:
    def test_set_fires_hook_with_new_value(self, kv, store_path, tmp_dir):
        log = os.path.join(tmp_dir, "log")
        kv("cmd", "add", "bg", f"{KV} --path {shlex.quote(store_path)} get bg-path >> {shlex.quote(log)}")
        kv("cmd", "add-hook", "h1", "bg", "set", "bg-path")

        assert kv("set", "bg-path", "/x/1.png")[0] == 0
        assert kv("set", "bg-path", "/x/2.png")[0] == 0
        assert read_lines(log) == ["/x/1.png", "/x/2.png"]

    def test_get_and_del_hooks(self, kv, tmp_dir):
        log = shlex.quote(os.path.join(tmp_dir, "log"))
        kv("cmd", "add", "on-get", f"echo got >> {log}")
        kv("cmd", "add", "on-del", f"echo deleted >> {log}")
        kv("cmd", "add-hook", "g", "on-get", "get", "k")
        kv("cmd", "add-hook", "d", "on-del", "del", "k")

        kv("set", "k", "v")
        kv("get", "k")
        kv("get", "other")
        kv("del", "k")
        assert read_lines(os.path.join(tmp_dir, "log")) == ["got", "deleted"]

    def test_hook_output_follows_value(self, store_path, capfd):
        main(["--path", store_path, "cmd", "add", "c", "echo from-hook"])
        main(["--path", store_path, "cmd", "add-hook", "h", "c", "get", "k"])
        main(["--path", store_path, "set", "k", "v"])
        capfd.readouterr()

        assert main(["--path", store_path, "get", "k"]) == 0
        assert capfd.readouterr().out == "v\nfrom-hook\n"

    def test_non_utf8_hook_output_does_not_stop_later_hooks(self, kv, tmp_dir):
        log = shlex.quote(os.path.join(tmp_dir, "log"))
        kv("cmd", "add", "bin", "printf '\\377\\376'")
        kv("cmd", "add", "good", f"echo ran >> {log}")
        kv("cmd", "add-hook", "h1", "bin", "set", "k")
        kv("cmd", "add-hook", "h2", "good", "set", "k")

        code, _, err = kv("set", "k", "v")
        assert code == 0
        assert err == ""
        assert read_lines(os.path.join(tmp_dir, "log")) == ["ran"]

    def test_run_non_utf8_output(self, kv):
        kv("cmd", "add", "bin", "printf '\\377ok'")
        assert kv("cmd", "run", "bin") == (0, "\ufffdok", "")

    def test_background_process_does_not_block_hook(self, kv, monkeypatch):
        monkeypatch.setenv("KV_COMMAND_TIMEOUT", "2")
        kv("cmd", "add", "viewer", "sleep 5 &")
        kv("cmd", "add-hook", "h", "viewer", "set", "k")

        code, _, err = kv("set", "k", "v")
        assert code == 0
        assert "timed out" not in err

    def test_failing_hook_does_not_fail_set(self, kv, store_path, tmp_dir):
        log = shlex.quote(os.path.join(tmp_dir, "log"))
        kv("cmd", "add", "bad", "exit 7")
        kv("cmd", "add", "good", f"echo ran >> {log}")
        kv("cmd", "add-hook", "h1", "bad", "set", "k")
        kv("cmd", "add-hook", "h2", "good", "set", "k")

        code, _, err = kv("set", "k", "v")
        assert code == 0
        assert "hook 'h1'" in err
        assert "status 7" in err
        assert read_lines(os.path.join(tmp_dir, "log")) == ["ran"]
        assert FileStore(store_path).read()["keys"]["k"] == "v"

    def test_self_triggering_hook_runs_once(self, kv, store_path, tmp_dir):
        log = shlex.quote(os.path.join(tmp_dir, "log"))
        path = shlex.quote(store_path)
        kv("cmd", "add", "bump", f"echo fired >> {log}; {KV} --path {path} set counter child")
        kv("cmd", "add-hook", "h", "bump", "set", "counter")

        assert kv("set", "counter", "parent")[0] == 0
        assert read_lines(os.path.join(tmp_dir, "log")) == ["fired"]
        # the child's write is not clobbered by the parent
        assert FileStore(store_path).read()["keys"]["counter"] == "child"

    def test_inherited_chain_skips_hooks(self, kv, monkeypatch):
        executor = FakeExecutor()
        kv("cmd", "add", "c", "true")
        kv("cmd", "add-hook", "h", "c", "set", "k")
        monkeypatch.setenv("KV_TRIGGER_CHAIN", json.dumps([["set", "k"]]))
        assert kv("set", "k", "v", executor=executor)[0] == 0
        assert executor.calls == []


# ============================================================
# Listing
# ============================================================

class TestList:
    def test_format_table_aligns(self):
        table = format_table(("Key", "Value"), [("a", "1"), ("longer", "2")])
        assert table.splitlines() == [
            "Key     --  Value",
            "a       --  1",
            "longer  --  2",
        ]

    def test_list_each(self, kv):
        kv("set", "b", "2")
        kv("set", "a", "1")
        kv("cmd", "add", "c", "echo", "x")
        kv("cmd", "add-hook", "h", "c", "set", "a")

        assert kv("list", "keys")[1].splitlines() == ["Key  --  Value", "b    --  2", "a    --  1"]
        assert kv("list", "cmds")[1].splitlines() == ["Name  --  Command", "c     --  echo x"]
        hooks = kv("list", "hooks")[1].splitlines()
        assert hooks[0].split() == ["Hook", "Name", "--", "Cmd", "Name", "--", "Trigger", "--", "Key"]
        assert hooks[1].split() == ["h", "--", "c", "--", "set", "--", "a"]

    def test_list_all(self, kv):
        out = kv("list")[1]
        assert out.count(kv_cli.RULE) == 2
        assert out.splitlines()[0].startswith("Key")


# ============================================================
# Errors and configuration
# ============================================================

class TestErrors:
    def test_corrupt_store(self, kv, store_path):
        os.makedirs(os.path.dirname(store_path))
        with open(store_path, "w") as f:
            f.write("{broken")
        code, _, err = kv("get", "k")
        assert code == 1
        assert "corrupt" in err

    def test_persist_error(self, capsys, tmp_dir):
        blocker = os.path.join(tmp_dir, "blocker")
        open(blocker, "w").close()
        code = main(["--path", os.path.join(blocker, "kv.json"), "set", "k", "v"])
        assert code == 1
        assert "may not be durable" in capsys.readouterr().err

    def test_bad_env_config(self, kv, monkeypatch):
        monkeypatch.setenv("KV_COMMAND_TIMEOUT", "soon")
        code, _, err = kv("get", "k")
        assert code == 1
        assert "KV_COMMAND_TIMEOUT" in err

    def test_env_path(self, capsys, monkeypatch, store_path):
        monkeypatch.setenv("KV_PATH", store_path)
        assert main(["set", "k", "v"]) == 0
        assert FileStore(store_path).read()["keys"] == {"k": "v"}

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: kv" in capsys.readouterr().out
