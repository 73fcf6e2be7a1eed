import io
import json
import unittest
from contextlib import redirect_stdout
from unittest.mock import patch

from rich.console import Console

import mtuopt.cli as cli
from mtuopt.config import SETTINGS
from mtuopt.core.errors import NoRouteError, PrivilegeError
from mtuopt.core.mtu import DiscoveryResult
from mtuopt.core.net_info import Interface
from mtuopt.core.session_log import SessionLogger
from mtuopt.core.stability import StabilityReport

IFACE = Interface("eth0", 1500, "192.168.1.1")
JITTERY = StabilityReport(payload_bytes=1464, sent=50, received=50, loss_percent=0,
                          avg_rtt_ms=40.2, jitter_ms=12.7)


class TestParser(unittest.TestCase):
    def test_defaults(self) -> None:
        with patch.dict("os.environ", {}, clear=True):
            args = cli._build_parser().parse_args([])
        self.assertIsNone(args.target)
        self.assertEqual(args.min_payload, 1200)
        self.assertEqual(args.max_payload, 1472)
        self.assertEqual(args.count, 50)
        self.assertEqual(args.interval_ms, 200)
        self.assertEqual(args.timeout_ms, 1000)
        self.assertIsNone(args.apply)
        self.assertFalse(args.dry_run)

    def test_env_overrides_defaults(self) -> None:
        with patch.dict("os.environ", {"MTUOPT_STRESS_COUNT": "20"}, clear=True):
            args = cli._build_parser().parse_args(["8.8.8.8"])
        self.assertEqual(args.target, "8.8.8.8")
        self.assertEqual(args.count, 20)

    def test_bad_env_value_is_usage_error(self) -> None:
        with (
            patch.dict("os.environ", {"MTUOPT_MIN_PAYLOAD": "lots"}, clear=True),
            patch("sys.stderr", io.StringIO()) as err,
        ):
            with self.assertRaises(SystemExit) as ctx:
                cli._build_parser().parse_args([])
        self.assertEqual(ctx.exception.code, 2)
        self.assertIn("invalid int value: 'lots'", err.getvalue())

    def test_apply_choices(self) -> None:
        args = cli._build_parser().parse_args(["--apply", "permanent", "-c", "10"])
        self.assertEqual(args.apply, "permanent")
        self.assertEqual(cli._fixed_mode(args).value, "permanent")
        with self.assertRaises(SystemExit), patch("sys.stderr", io.StringIO()):
            cli._build_parser().parse_args(["--apply", "sometimes"])

    def test_dry_run_wins_over_apply(self) -> None:
        args = cli._build_parser().parse_args(["--apply", "temporary", "--dry-run"])
        self.assertEqual(cli._fixed_mode(args).value, "none")


class TestRun(unittest.TestCase):
    def setUp(self) -> None:
        SessionLogger.reset()
        self.addCleanup(SessionLogger.reset)
        saved = (SETTINGS.verbose, SETTINGS.log_enabled)

        def restore() -> None:
            SETTINGS.verbose, SETTINGS.log_enabled = saved

        self.addCleanup(restore)

        self.out = io.StringIO()
        self.err = io.StringIO()
        self.patches = {}
        for name, kwargs in (
            ("mtuopt.cli.console", {"new": Console(file=self.out, width=120)}),
            ("mtuopt.cli.err_console", {"new": Console(file=self.err, width=120)}),
            ("mtuopt.cli._interactive", {"return_value": False}),
            ("mtuopt.cli.require_root", {"return_value": None}),
            ("mtuopt.core.session.detect_interface", {"return_value": IFACE}),
            ("mtuopt.core.session.discover", {"return_value": DiscoveryResult(1472, probes=9)}),
            ("mtuopt.core.session.assess_stability", {"return_value": JITTERY}),
            ("mtuopt.core.session.require_root", {"return_value": None}),
            ("mtuopt.core.session.set_iface_mtu", {"return_value": None}),
            ("mtuopt.core.apply.set_iface_mtu", {"return_value": None}),
            ("mtuopt.core.apply.verify_connectivity", {"return_value": True}),
            ("mtuopt.core.apply.time.sleep", {"return_value": None}),
        ):
            p = patch(name, **kwargs)
            self.patches[name] = p.start()
            self.addCleanup(p.stop)

    def test_json_report_on_stdout(self) -> None:
        buf = io.StringIO()
        with redirect_stdout(buf):
            rc = cli.main(["1.1.1.1", "--json", "--no-log"])

        self.assertEqual(rc, 0)
        data = json.loads(buf.getvalue())
        self.assertEqual(data["interface"]["name"], "eth0")
        self.assertEqual(data["discovery"]["theoretical_mtu"], 1500)
        self.assertEqual(data["recommendation"]["mtu"], 1492)
        self.assertEqual(data["recommendation"]["reason"], "JITTER_DETECTED")
        self.assertEqual(data["apply"]["mode"], "none")
        self.assertIn("Optimal MTU", self.err.getvalue())

    def test_temporary_apply(self) -> None:
        rc = cli.main(["1.1.1.1", "--apply", "temporary", "--no-log"])
        self.assertEqual(rc, 0)
        self.patches["mtuopt.core.apply.set_iface_mtu"].assert_called_once_with("eth0", 1492)
        self.assertIn("MTU will reset on reboot", self.out.getvalue())

    def test_dry_run_touches_nothing(self) -> None:
        rc = cli.main(["1.1.1.1", "--apply", "temporary", "--dry-run", "--no-log"])
        self.assertEqual(rc, 0)
        self.patches["mtuopt.core.apply.set_iface_mtu"].assert_not_called()
        self.assertIn("DRY-RUN", self.out.getvalue())

    def test_no_route_exits_2(self) -> None:
        self.patches["mtuopt.core.session.detect_interface"].side_effect = NoRouteError(
            "No route to target '10.9.9.9'. Check connectivity."
        )
        rc = cli.main(["10.9.9.9", "--no-log"])
        self.assertEqual(rc, 2)
        self.assertIn("No route to target", self.out.getvalue())

    def test_invalid_target_exits_3(self) -> None:
        rc = cli.main(["999.1.1.1", "--no-log"])
        self.assertEqual(rc, 3)
        self.patches["mtuopt.core.session.detect_interface"].assert_not_called()

    def test_not_root_fails_before_probing(self) -> None:
        self.patches["mtuopt.cli.require_root"].side_effect = PrivilegeError(
            "This operation must be run as root (sudo)."
        )
        rc = cli.main(["1.1.1.1", "--apply", "permanent", "--no-log"])
        self.assertEqual(rc, 2)
        self.patches["mtuopt.core.session.detect_interface"].assert_not_called()

    def test_unwritable_netplan_exits_5(self) -> None:
        with (
            patch("mtuopt.core.apply.netplan.netplan_available", return_value=True),
            patch("mtuopt.core.apply.uses_dhcp4", return_value=False),
            patch(
                "mtuopt.core.apply.netplan.write_fragment",
                side_effect=PermissionError(30, "Read-only file system"),
            ),
        ):
            rc = cli.main(["1.1.1.1", "--apply", "permanent", "--no-log"])
        self.assertEqual(rc, 5)
        self.assertIn("Could not write", self.out.getvalue())

    def test_ctrl_c_exits_130(self) -> None:
        self.patches["mtuopt.core.session.assess_stability"].side_effect = KeyboardInterrupt
        rc = cli.main(["1.1.1.1", "--no-log"])
        self.assertEqual(rc, 130)
        self.assertIn("Aborted", self.err.getvalue())


if __name__ == "__main__":
    unittest.main(verbosity=2)
