import unittest
import unittest.mock
from unittest.mock import patch

from fakes import FakeDrive, make_handle

from gdriveupload.errors import (
    ConfigurationError,
    CredentialNotFoundError,
    UnknownAccountError,
)
from gdriveupload.models import AccountConfig
from gdriveupload.models import Token
from gdriveupload.registry import AccountHandle, AccountRegistry, build_registry, connect_account


def _config(account_id: str, *, enabled: bool = True) -> AccountConfig:
    return AccountConfig(id=account_id, credentials_file=f"{account_id}.json", enabled=enabled)


class RecordingConnector:
    def __init__(self, failing: tuple[str, ...] = ()) -> None:
        self.failing = failing
        self.calls: list[str] = []

    def __call__(self, config: AccountConfig) -> AccountHandle:
        self.calls.append(config.id)
        if config.id in self.failing:
            raise CredentialNotFoundError("missing", details={"path": config.credentials_file})
        return AccountHandle(config=config, drive=FakeDrive())  # type: ignore[arg-type]


class TestAccountRegistry(unittest.TestCase):
    def test_build_skips_disabled_and_first_is_default(self) -> None:
        connect = RecordingConnector()
        registry = AccountRegistry.build(
            [_config("off", enabled=False), _config("A"), _config("B")],
            connect=connect,
        )

        self.assertEqual(connect.calls, ["A", "B"])
        self.assertEqual(registry.ids(), ["A", "B"])
        self.assertEqual(registry.default.id, "A")
        self.assertEqual(len(registry), 2)

    def test_build_without_enabled_accounts_fails(self) -> None:
        with self.assertRaises(ConfigurationError):
            AccountRegistry.build([_config("off", enabled=False)], connect=RecordingConnector())
        with self.assertRaises(ConfigurationError):
            AccountRegistry.build([], connect=RecordingConnector())

    def test_build_is_fail_fast_by_default(self) -> None:
        connect = RecordingConnector(failing=("A",))
        with self.assertRaises(CredentialNotFoundError):
            AccountRegistry.build([_config("A"), _config("B")], connect=connect)
        self.assertEqual(connect.calls, ["A"])

    def test_build_skip_failed_collects_failures(self) -> None:
        connect = RecordingConnector(failing=("A",))
        with self.assertLogs("gdriveupload.registry", level="WARNING"):
            registry = AccountRegistry.build(
                [_config("A"), _config("B")],
                connect=connect,
                skip_failed=True,
            )

        self.assertEqual(registry.default.id, "B")
        self.assertEqual([f.account_id for f in registry.failures], ["A"])

    def test_build_skip_failed_with_all_failing(self) -> None:
        connect = RecordingConnector(failing=("A", "B"))
        with self.assertLogs("gdriveupload.registry", level="WARNING"):
            with self.assertRaises(ConfigurationError) as ctx:
                AccountRegistry.build([_config("A"), _config("B")], connect=connect, skip_failed=True)
        self.assertEqual(ctx.exception.details["failed"], ["A", "B"])

    def test_resolve(self) -> None:
        registry = AccountRegistry([make_handle("A"), make_handle("B")])

        self.assertEqual(registry.resolve().id, "A")
        self.assertEqual(registry.resolve("").id, "A")
        self.assertEqual(registry.resolve("B").id, "B")
        with self.assertRaises(UnknownAccountError):
            registry.resolve("does-not-exist")

    def test_duplicate_ids_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            AccountRegistry([make_handle("A"), make_handle("A")])


class TestConnectAccount(unittest.TestCase):
    def test_connect_account_wires_store_token_and_controller(self) -> None:
        secrets = b'{"installed": {"client_id": "id", "client_secret": "sec"}}'
        store = unittest.mock.Mock()
        store.reveal.return_value = secrets
        token = Token("access", refresh_value="r")

        with patch("gdriveupload.registry.TokenManager") as manager_cls, patch(
            "gdriveupload.registry.DriveController"
        ) as controller_cls:
            manager_cls.return_value.get_token.return_value = token
            handle = connect_account(
                _config("A"),
                store=store,
                callback_host_port="localhost:9999",
            )

        store.reveal.assert_called_once_with("A.json")
        args, kwargs = manager_cls.call_args
        self.assertEqual(args[2], "A_token.json")
        self.assertEqual(kwargs["callback_host_port"], "localhost:9999")
        self.assertEqual(kwargs["account_id"], "A")
        creds = controller_cls.call_args.args[0]
        self.assertEqual(creds.token, "access")
        self.assertIs(handle.drive, controller_cls.return_value)
        self.assertEqual(handle.id, "A")

    def test_build_registry_aborts_on_missing_credentials(self) -> None:
        store = unittest.mock.Mock()
        store.reveal.side_effect = CredentialNotFoundError("missing")

        with self.assertRaises(CredentialNotFoundError):
            build_registry([_config("A")], store=store, callback_host_port="localhost:9999")


if __name__ == "__main__":
    unittest.main()
