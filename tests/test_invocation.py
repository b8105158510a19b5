"""Tests for panout.invocation module."""

from pathlib import Path

import pytest

from panout.config import Config, Layout, parse_config
from panout.errors import (
    ConfigNotFoundError,
    InvalidRequest,
    MalformedReference,
    PaneOutOfRange,
    ReferenceCycle,
    ServerNotFound,
    WorkspaceNotFound,
)
from panout.invocation import BundleRequest, Invocation, Phase, ServerRequest, WorkspaceRequest
from panout.plan import ApplyLayout, CreatePane, CreateWindow, Operation, SendKeys


class RecordingDriver:
    """Driver that records operations instead of running tmux."""

    def __init__(self) -> None:
        self.operations: list[Operation] = []

    def execute(self, operation: Operation) -> list[str]:
        self.operations.append(operation)
        return [operation.describe()]


def _config(data: dict[str, object]) -> Config:
    config, _ = parse_config(data)
    return config


DEV = _config(
    {
        "dev": {
            "frontend": {"cmd": ["npm run dev"], "pane": 0},
            "backend": {"cmd": ["cd ~/api", "cargo run"], "pane": 1},
            "all": {"cmd": ["@dev.frontend", "@dev.backend"], "layout": "vertical"},
        },
        "servers": {"prod": {"host": "admin@10.0.0.1", "disconnect": True, "cmd": "uptime"}},
        "workspaces": {"proj": {"dir": "~/proj", "windows": [{"panes": 2}, {"panes": 1, "name": "logs"}]}},
    }
)


class TestBundleInvocation:
    """Tests for bundle requests."""

    def test_runs_to_done(self) -> None:
        """Should pass through every phase and dispatch the plan."""
        driver = RecordingDriver()
        invocation = Invocation(BundleRequest("dev.all"), config=DEV)
        commands = invocation.run(driver)

        assert invocation.phase is Phase.DONE
        assert invocation.failure is None
        assert driver.operations == [
            CreatePane(0),
            ApplyLayout(0, Layout.VERTICAL),
            SendKeys(0, 0, "npm run dev"),
            SendKeys(0, 1, "cd ~/api"),
            SendKeys(0, 1, "cargo run"),
        ]
        assert len(commands) == 5

    def test_pane_count_and_layout_override(self) -> None:
        """Should honor the requested pane count and layout."""
        driver = RecordingDriver()
        Invocation(BundleRequest("dev.all", pane_count=3, layout_override=Layout.TILED), config=DEV).run(driver)
        assert driver.operations.count(CreatePane(0)) == 2
        assert ApplyLayout(0, Layout.TILED) in driver.operations

    def test_group_target(self) -> None:
        """Should run every bundle of a group for group.*."""
        config = _config({"svc": {"a": {"cmd": "a"}, "b": {"cmd": "b"}}})
        driver = RecordingDriver()
        Invocation(BundleRequest("svc.*"), config=config).run(driver)
        sent = [op for op in driver.operations if isinstance(op, SendKeys)]
        assert sent == [SendKeys(0, 0, "a"), SendKeys(0, 1, "b")]

    def test_prepare_does_not_dispatch(self) -> None:
        """Should stop at PLANNING with a plan and no executed operations."""
        invocation = Invocation(BundleRequest("dev.frontend"), config=DEV)
        plan = invocation.prepare()
        assert invocation.phase is Phase.PLANNING
        assert invocation.plan is plan
        assert len(plan) == 2


class TestFailures:
    """Tests for failing invocations."""

    def test_cycle_fails_before_any_operation(self) -> None:
        """Should end FAILED without dispatching anything."""
        config = _config({"dev": {"all": {"cmd": ["echo", "@dev.all"]}}})
        driver = RecordingDriver()
        invocation = Invocation(BundleRequest("dev.all"), config=config)
        with pytest.raises(ReferenceCycle):
            invocation.run(driver)
        assert invocation.phase is Phase.FAILED
        assert invocation.failure is not None
        assert "dev.all -> dev.all" in invocation.failure
        assert driver.operations == []

    def test_pane_out_of_range_fails_in_planning(self) -> None:
        """Should reject a too-small pane count before dispatch."""
        driver = RecordingDriver()
        invocation = Invocation(BundleRequest("dev.all", pane_count=1), config=DEV)
        with pytest.raises(PaneOutOfRange):
            invocation.run(driver)
        assert invocation.phase is Phase.FAILED
        assert driver.operations == []

    def test_zero_pane_count(self) -> None:
        """Should fail in planning when fewer than one pane is requested."""
        driver = RecordingDriver()
        invocation = Invocation(BundleRequest("dev.frontend", pane_count=0), config=DEV)
        with pytest.raises(InvalidRequest):
            invocation.run(driver)
        assert invocation.phase is Phase.FAILED
        assert invocation.failure is not None
        assert "at least 1" in invocation.failure
        assert driver.operations == []

    def test_unexpected_driver_error(self) -> None:
        """Should end FAILED even when the error is not a panout error."""

        class BrokenDriver:
            def execute(self, operation: Operation) -> list[str]:
                raise RuntimeError("driver crashed")

        invocation = Invocation(BundleRequest("dev.frontend"), config=DEV)
        with pytest.raises(RuntimeError):
            invocation.run(BrokenDriver())
        assert invocation.phase is Phase.FAILED
        assert invocation.failure == "driver crashed"

    def test_malformed_target(self) -> None:
        """Should reject a target without a dot."""
        invocation = Invocation(BundleRequest("dev"), config=DEV)
        with pytest.raises(MalformedReference):
            invocation.prepare()
        assert invocation.phase is Phase.FAILED

    def test_unknown_workspace(self) -> None:
        """Should raise WorkspaceNotFound."""
        with pytest.raises(WorkspaceNotFound):
            Invocation(WorkspaceRequest("nope"), config=DEV).prepare()

    def test_unknown_server(self) -> None:
        """Should raise ServerNotFound."""
        with pytest.raises(ServerNotFound):
            Invocation(ServerRequest("nope"), config=DEV).prepare()

    def test_missing_config_file(self, tmp_path: Path) -> None:
        """Should fail in LOADING when the config file is missing."""
        invocation = Invocation(BundleRequest("dev.all"), config_path=tmp_path / "missing.toml")
        with pytest.raises(ConfigNotFoundError):
            invocation.prepare()
        assert invocation.phase is Phase.FAILED

    def test_cannot_run_twice(self) -> None:
        """Should refuse to reuse a finished invocation."""
        invocation = Invocation(BundleRequest("dev.frontend"), config=DEV)
        invocation.run(RecordingDriver())
        with pytest.raises(RuntimeError):
            invocation.run(RecordingDriver())

    def test_execute_requires_prepare(self) -> None:
        """Should refuse to execute before planning."""
        with pytest.raises(RuntimeError):
            Invocation(BundleRequest("dev.frontend"), config=DEV).execute(RecordingDriver())


class TestOtherRequests:
    """Tests for workspace and server requests."""

    def test_workspace(self) -> None:
        """Should create the second window and cd every pane."""
        driver = RecordingDriver()
        Invocation(WorkspaceRequest("proj"), config=DEV).run(driver)
        assert CreateWindow(1, "logs") in driver.operations
        sent = [op.command for op in driver.operations if isinstance(op, SendKeys)]
        assert sent == ["cd ~/proj"] * 3

    def test_server(self) -> None:
        """Should log in, run commands and exit."""
        driver = RecordingDriver()
        Invocation(ServerRequest("prod"), config=DEV).run(driver)
        assert driver.operations == [
            SendKeys(0, 0, "ssh admin@10.0.0.1"),
            SendKeys(0, 0, "uptime"),
            SendKeys(0, 0, "exit"),
        ]

    def test_loads_config_file(self, tmp_path: Path) -> None:
        """Should read the config from the given path and keep its warnings."""
        config_file = tmp_path / "config.toml"
        config_file.write_text('[dev.a]\ncmd = "a"\npane = 0\n\n[dev.b]\ncmd = "b"\npane = 0\n')
        invocation = Invocation(BundleRequest("dev.a"), config_path=config_file)
        invocation.run(RecordingDriver())
        assert invocation.phase is Phase.DONE
        assert len(invocation.warnings) == 1


class TestLayoutPrecedence:
    """Tests for the layout chosen from config and request."""

    @staticmethod
    def _layout(data: dict[str, object], override: Layout | None = None) -> Layout:
        driver = RecordingDriver()
        Invocation(BundleRequest("dev.web", layout_override=override), config=_config(data)).run(driver)
        layouts = [op.layout for op in driver.operations if isinstance(op, ApplyLayout)]
        assert len(layouts) == 1
        return layouts[0]

    def test_nothing_set_is_tiled(self) -> None:
        """Should fall back to tiled."""
        assert self._layout({"dev": {"web": {"cmd": "x"}}}) == Layout.TILED

    def test_config_default_only(self) -> None:
        """Should use defaults.layout when the bundle has none."""
        data: dict[str, object] = {"defaults": {"layout": "horizontal"}, "dev": {"web": {"cmd": "x"}}}
        assert self._layout(data) == Layout.HORIZONTAL

    def test_bundle_beats_default(self) -> None:
        """Should prefer the bundle layout over defaults.layout."""
        data: dict[str, object] = {
            "defaults": {"layout": "horizontal"},
            "dev": {"web": {"cmd": "x", "layout": "vertical"}},
        }
        assert self._layout(data) == Layout.VERTICAL

    def test_override_beats_bundle(self) -> None:
        """Should prefer the requested layout over the bundle and defaults."""
        data: dict[str, object] = {
            "defaults": {"layout": "horizontal"},
            "dev": {"web": {"cmd": "x", "layout": "vertical"}},
        }
        assert self._layout(data, override=Layout.TILED) == Layout.TILED
