import unittest

from gdriveupload.errors.exceptions import (
    ApiError,
    ConflictError,
    GDriveUploadError,
    HttpErrorInfo,
    InsufficientSpaceError,
    InvalidArgumentError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    RateLimitError,
    RemoteAuthError,
    RemoteOperationError,
    UnknownAccountError,
    ConfigurationError,
    map_http_error,
)


class TestExceptions(unittest.TestCase):
    def test_base_error_keeps_details_and_cause(self) -> None:
        cause = RuntimeError("root")
        err = GDriveUploadError("msg", details={"k": "v"}, cause=cause)
        self.assertEqual(str(err), "msg")
        self.assertEqual(err.details["k"], "v")
        self.assertIs(err.cause, cause)

    def test_unknown_account_is_configuration_error(self) -> None:
        self.assertTrue(issubclass(UnknownAccountError, ConfigurationError))

    def test_insufficient_space_carries_figures(self) -> None:
        err = InsufficientSpaceError(
            "no space",
            required=10,
            free=5,
            total=100,
            used=95,
            details={"account_id": "A"},
        )
        self.assertEqual(err.required, 10)
        self.assertEqual(err.free, 5)
        self.assertEqual(err.total, 100)
        self.assertEqual(err.used, 95)
        self.assertEqual(err.details["account_id"], "A")
        self.assertEqual(err.details["required"], 10)

    def test_map_http_error_basic(self) -> None:
        err = map_http_error(HttpErrorInfo(status_code=404, message="not found"))
        self.assertIsInstance(err, NotFoundError)

        err = map_http_error(HttpErrorInfo(status_code=400, message="bad req"))
        self.assertIsInstance(err, InvalidArgumentError)

        err = map_http_error(HttpErrorInfo(status_code=429, message="rate"))
        self.assertIsInstance(err, RateLimitError)

        err = map_http_error(HttpErrorInfo(status_code=409, message="conflict"))
        self.assertIsInstance(err, ConflictError)

        err = map_http_error(HttpErrorInfo(status_code=401, message="auth"))
        self.assertIsInstance(err, RemoteAuthError)

    def test_mapped_errors_are_remote_operation_errors(self) -> None:
        for status in (400, 401, 403, 404, 409, 429, 500, 418):
            err = map_http_error(HttpErrorInfo(status_code=status))
            self.assertIsInstance(err, RemoteOperationError)
            self.assertEqual(err.details["status_code"], status)

    def test_map_http_error_403_variants(self) -> None:
        err = map_http_error(
            HttpErrorInfo(status_code=403, reason="storageQuotaExceeded", message="quota")
        )
        self.assertIsInstance(err, QuotaExceededError)

        err = map_http_error(
            HttpErrorInfo(status_code=403, reason="userRateLimitExceeded", message="slow down")
        )
        self.assertIsInstance(err, RateLimitError)

        err = map_http_error(
            HttpErrorInfo(status_code=403, reason="insufficientPermissions", message="x")
        )
        self.assertIsInstance(err, PermissionDeniedError)

    def test_map_http_error_5xx_is_api_error(self) -> None:
        err = map_http_error(HttpErrorInfo(status_code=503, message="unavail"))
        self.assertIsInstance(err, ApiError)

    def test_map_http_error_other_is_api_error(self) -> None:
        err = map_http_error(HttpErrorInfo(status_code=418, message="teapot"))
        self.assertIsInstance(err, ApiError)
        self.assertEqual(str(err), "teapot")


if __name__ == "__main__":
    unittest.main()
