from macpgp.exceptions import (
    ChecksumMismatchError,
    CryptoError,
    FormatError,
    InvalidPassphraseError,
    KeyNotFoundError,
    MacPGPError,
    MalformedContainerError,
    NoKeysSelectedError,
    UnsupportedVersionError,
)


def test_macpgp_error_str_without_context() -> None:
    error = MacPGPError("Something failed")

    assert str(error) == "Something failed"


def test_macpgp_error_str_with_context() -> None:
    error = MacPGPError("Failed", path="/tmp/backup.macpgp", attempt=2)

    assert "Failed" in str(error)
    assert "path='/tmp/backup.macpgp'" in str(error)
    assert "attempt=2" in str(error)


def test_default_messages() -> None:
    assert str(NoKeysSelectedError()) == "No keys selected for backup"
    assert str(InvalidPassphraseError()) == "Invalid passphrase"


def test_key_not_found_error_carries_fingerprint() -> None:
    error = KeyNotFoundError("Key not found", fingerprint="ABCD")

    assert error.fingerprint == "ABCD"
    assert error.context == {"fingerprint": "ABCD"}


def test_format_errors_share_base_class() -> None:
    assert issubclass(MalformedContainerError, FormatError)
    assert issubclass(UnsupportedVersionError, FormatError)
    assert issubclass(FormatError, MacPGPError)


def test_checksum_mismatch_is_crypto_error() -> None:
    error = ChecksumMismatchError("mismatch", expected="aa", actual="bb")

    assert isinstance(error, CryptoError)
    assert error.expected == "aa"
    assert error.actual == "bb"


def test_errors_have_remediation_hints() -> None:
    assert InvalidPassphraseError.remediation
    assert UnsupportedVersionError.remediation
    assert MacPGPError.remediation is None
