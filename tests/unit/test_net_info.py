import socket
import unittest
from unittest.mock import patch

import mtuopt.core.net_info as net
from mtuopt.core.errors import MtuUnreadableError, NetworkEnvironmentError, NoRouteError

ROUTE_GET = "1.1.1.1 via 192.168.1.1 dev eth0 src 192.168.1.20 uid 0 \n    cache \n"
ROUTE_DEFAULT = "default via 192.168.1.1 dev eth0 proto dhcp src 192.168.1.20 metric 100\n"
LINK_SHOW = (
    "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1492 qdisc fq_codel state UP mode DEFAULT\n"
    "    link/ether 52:54:00:12:34:56 brd ff:ff:ff:ff:ff:ff\n"
)
ADDR_DHCP = (
    "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n"
    "    inet 192.168.1.20/24 metric 100 brd 192.168.1.255 scope global dynamic eth0\n"
    "       valid_lft 85924sec preferred_lft 85924sec\n"
)
ADDR_STATIC = (
    "2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500\n"
    "    inet 10.0.0.5/24 brd 10.0.0.255 scope global eth0\n"
)


def fake_run(cmd, timeout=60):  # type: ignore[no-untyped-def]
    if cmd[:3] == ["ip", "route", "get"]:
        return 0, ROUTE_GET, ""
    if cmd[:4] == ["ip", "route", "show", "default"]:
        return 0, ROUTE_DEFAULT, ""
    if cmd[:3] == ["ip", "link", "show"]:
        return 0, LINK_SHOW, ""
    return 1, "", ""


class TestDetectInterface(unittest.TestCase):
    def test_detects_route_mtu_and_gateway(self) -> None:
        with (
            patch("mtuopt.core.net_info.require_tool", return_value=None),
            patch("mtuopt.core.net_info.socket.gethostbyname", return_value="1.1.1.1"),
            patch("mtuopt.core.net_info.run_command", side_effect=fake_run),
            patch("mtuopt.core.net_info.pathlib.Path.read_text", return_value="1500\n"),
        ):
            iface = net.detect_interface("1.1.1.1")

        self.assertEqual(iface, net.Interface(name="eth0", mtu=1500, gateway="192.168.1.1"))

    def test_unresolvable_target_is_no_route(self) -> None:
        with (
            patch("mtuopt.core.net_info.require_tool", return_value=None),
            patch(
                "mtuopt.core.net_info.socket.gethostbyname",
                side_effect=socket.gaierror("Name or service not known"),
            ),
        ):
            with self.assertRaises(NoRouteError):
                net.detect_interface("no-such-host.invalid")

    def test_missing_route_is_no_route(self) -> None:
        with (
            patch("mtuopt.core.net_info.require_tool", return_value=None),
            patch("mtuopt.core.net_info.socket.gethostbyname", return_value="10.9.9.9"),
            patch(
                "mtuopt.core.net_info.run_command",
                return_value=(2, "", "RTNETLINK answers: Network is unreachable"),
            ),
        ):
            with self.assertRaises(NoRouteError) as ctx:
                net.detect_interface("10.9.9.9")
        self.assertEqual(ctx.exception.exit_code, 2)


class TestMtuReadWrite(unittest.TestCase):
    def test_read_falls_back_to_ip_link(self) -> None:
        with (
            patch("mtuopt.core.net_info.pathlib.Path.read_text", side_effect=OSError),
            patch("mtuopt.core.net_info.run_command", side_effect=fake_run),
        ):
            self.assertEqual(net.read_iface_mtu("eth0"), 1492)

    def test_unreadable_mtu(self) -> None:
        with (
            patch("mtuopt.core.net_info.pathlib.Path.read_text", side_effect=OSError),
            patch("mtuopt.core.net_info.run_command", return_value=(1, "", "")),
        ):
            with self.assertRaises(MtuUnreadableError):
                net.read_iface_mtu("ghost0")

    def test_set_iface_mtu_runs_ip_link(self) -> None:
        with patch("mtuopt.core.net_info.run_command", return_value=(0, "", "")) as run:
            net.set_iface_mtu("eth0", 1492)
        self.assertEqual(run.call_args[0][0], ["ip", "link", "set", "dev", "eth0", "mtu", "1492"])

    def test_set_iface_mtu_failure_raises(self) -> None:
        with patch(
            "mtuopt.core.net_info.run_command",
            return_value=(2, "", "Error: mtu greater than device maximum."),
        ):
            with self.assertRaises(NetworkEnvironmentError) as ctx:
                net.set_iface_mtu("eth0", 9000)
        self.assertIn("device maximum", str(ctx.exception))

    def test_uses_dhcp4(self) -> None:
        with patch("mtuopt.core.net_info.run_command", return_value=(0, ADDR_DHCP, "")):
            self.assertTrue(net.uses_dhcp4("eth0"))
        with patch("mtuopt.core.net_info.run_command", return_value=(0, ADDR_STATIC, "")):
            self.assertFalse(net.uses_dhcp4("eth0"))


class TestInterfaceResult(unittest.TestCase):
    def test_gateway_na(self) -> None:
        res = net.interface_result(net.Interface("eth0", 1500, None), "1.1.1.1")
        self.assertIn("Gateway:      N/A", res.details)


if __name__ == "__main__":
    unittest.main(verbosity=2)
