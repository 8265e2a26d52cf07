import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from gdriveupload.auth import CredentialStore, TokenManager, TokenState, classify_token, token_file_for
from gdriveupload.errors import AuthorizationError, AuthorizationTimeoutError, CredentialError
from gdriveupload.models import Token


def _future() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=1)


def _past() -> datetime:
    return datetime.now(timezone.utc) - timedelta(hours=1)


class FakeOAuth:
    def __init__(self, *, refresh_error: bool = False) -> None:
        self.calls: list = []
        self.refresh_error = refresh_error

    def build_authorization_url(self, state: str) -> str:
        self.calls.append(("url", state))
        return f"https://auth.example/?state={state}"

    def exchange_code_for_token(self, code: str) -> Token:
        self.calls.append(("exchange", code))
        return Token("exchanged", refresh_value="r2", expiry=_future())

    def refresh_token(self, token: Token) -> Token:
        self.calls.append(("refresh", token.refresh_value))
        if self.refresh_error:
            raise AuthorizationError("invalid_grant")
        return Token("refreshed", refresh_value=token.refresh_value, expiry=_future())


class FakeListener:
    instances: list = []

    def __init__(self, host_port: str, state: str, *, code: str = "CODE", timeout: bool = False) -> None:
        self.host_port = host_port
        self.state = state
        self.code = code
        self.timeout = timeout
        self.started = False
        self.shutdowns = 0
        FakeListener.instances.append(self)

    def start(self):
        self.started = True
        return self

    def shutdown(self) -> None:
        self.shutdowns += 1

    def wait_for_code(self, timeout, *, deadline=None, cancel=None) -> str:
        self.waited = timeout
        if self.timeout:
            raise AuthorizationTimeoutError("timed out")
        return self.code


class TestClassifyToken(unittest.TestCase):
    def test_states(self) -> None:
        self.assertIs(classify_token(None), TokenState.ABSENT)
        self.assertIs(classify_token(Token("a", expiry=_future())), TokenState.VALID)
        self.assertIs(
            classify_token(Token("a", refresh_value="r", expiry=_past())),
            TokenState.EXPIRED_REFRESHABLE,
        )
        self.assertIs(classify_token(Token("a", expiry=_past())), TokenState.EXPIRED_TERMINAL)

    def test_token_file_for(self) -> None:
        self.assertEqual(token_file_for("/etc/app/google_credentials.json"), "/etc/app/google_credentials_token.json")
        self.assertEqual(token_file_for("creds"), "creds_token.json")


class TestTokenManager(unittest.TestCase):
    @classmethod
    def setUpClass(cls) -> None:
        cls.store = CredentialStore("s3cret", host_context="test-host/tester")

    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.token_file = str(Path(self._tmp.name) / "creds_token.json")
        self.browser_urls: list = []
        FakeListener.instances = []

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _manager(self, oauth: FakeOAuth, *, listener_factory=FakeListener, open_browser=None) -> TokenManager:
        return TokenManager(
            oauth,  # type: ignore[arg-type]
            self.store,
            self.token_file,
            callback_host_port="localhost:8080",
            open_browser=open_browser or self._open_browser,
            listener_factory=listener_factory,
            account_id="A",
        )

    def _open_browser(self, url: str) -> bool:
        self.browser_urls.append(url)
        return True

    def _save(self, token: Token) -> None:
        self.store.write_protected(self.token_file, token.to_json().encode("utf-8"))

    def test_valid_cached_token_needs_no_network(self) -> None:
        cached = Token("cached", refresh_value="r", expiry=_future())
        self._save(cached)
        oauth = FakeOAuth()

        token = self._manager(oauth).get_token()

        self.assertEqual(token, cached)
        self.assertEqual(oauth.calls, [])
        self.assertEqual(FakeListener.instances, [])

    def test_expired_token_is_refreshed_once_and_persisted(self) -> None:
        self._save(Token("old", refresh_value="r", expiry=_past()))
        oauth = FakeOAuth()
        manager = self._manager(oauth)

        token = manager.get_token()

        self.assertEqual(token.access_value, "refreshed")
        self.assertEqual(oauth.calls, [("refresh", "r")])
        self.assertEqual(manager.load_token(), token)

    def test_refresh_failure_falls_back_to_authorization(self) -> None:
        self._save(Token("old", refresh_value="r", expiry=_past()))
        oauth = FakeOAuth(refresh_error=True)

        token = self._manager(oauth).get_token()

        self.assertEqual(token.access_value, "exchanged")
        kinds = [c[0] for c in oauth.calls]
        self.assertEqual(kinds, ["refresh", "url", "exchange"])

    def test_expired_without_refresh_value_authorizes(self) -> None:
        self._save(Token("old", expiry=_past()))
        oauth = FakeOAuth()

        token = self._manager(oauth).get_token()

        self.assertEqual(token.access_value, "exchanged")
        self.assertNotIn("refresh", [c[0] for c in oauth.calls])

    def test_absent_token_authorizes_with_matching_state(self) -> None:
        oauth = FakeOAuth()
        manager = self._manager(oauth)

        token = manager.get_token()

        self.assertEqual(token.access_value, "exchanged")
        listener = FakeListener.instances[0]
        self.assertTrue(listener.started)
        self.assertEqual(listener.host_port, "localhost:8080")
        self.assertEqual(("url", listener.state), oauth.calls[0])
        self.assertEqual(oauth.calls[1], ("exchange", "CODE"))
        self.assertEqual(listener.waited, 300.0)
        self.assertEqual(len(self.browser_urls), 1)
        self.assertEqual(manager.load_token(), token)

    def test_corrupt_token_file_authorizes(self) -> None:
        Path(self.token_file).write_bytes(b"{ not a token")
        oauth = FakeOAuth()

        token = self._manager(oauth).get_token()

        self.assertEqual(token.access_value, "exchanged")

    def test_undecryptable_token_file_authorizes(self) -> None:
        other = CredentialStore("s3cret", host_context="other-host/tester")
        other.write_protected(self.token_file, Token("x", expiry=_future()).to_json().encode())
        oauth = FakeOAuth()

        token = self._manager(oauth).get_token()

        self.assertEqual(token.access_value, "exchanged")

    def test_browser_failure_is_not_fatal(self) -> None:
        def broken_browser(url: str) -> bool:
            raise RuntimeError("no display")

        oauth = FakeOAuth()
        token = self._manager(oauth, open_browser=broken_browser).get_token()
        self.assertEqual(token.access_value, "exchanged")

    def test_interrupt_while_opening_browser_shuts_listener_down(self) -> None:
        def interrupted_browser(url: str) -> bool:
            raise KeyboardInterrupt

        oauth = FakeOAuth()
        with self.assertRaises(KeyboardInterrupt):
            self._manager(oauth, open_browser=interrupted_browser).get_token()

        listener = FakeListener.instances[-1]
        self.assertTrue(listener.started)
        self.assertEqual(listener.shutdowns, 1)
        self.assertNotIn("exchange", [c[0] for c in oauth.calls])

    def test_authorization_timeout_propagates(self) -> None:
        def factory(host_port: str, state: str) -> FakeListener:
            return FakeListener(host_port, state, timeout=True)

        oauth = FakeOAuth()
        with self.assertRaises(AuthorizationTimeoutError):
            self._manager(oauth, listener_factory=factory).get_token()
        self.assertNotIn("exchange", [c[0] for c in oauth.calls])

    def test_persistence_failure_still_returns_token(self) -> None:
        self._save(Token("old", refresh_value="r", expiry=_past()))
        oauth = FakeOAuth()
        manager = self._manager(oauth)

        with patch.object(
            CredentialStore,
            "write_protected",
            side_effect=CredentialError("disk full"),
        ):
            with self.assertLogs("gdriveupload.auth.token_manager", level="WARNING"):
                token = manager.get_token()

        self.assertEqual(token.access_value, "refreshed")


if __name__ == "__main__":
    unittest.main()
