__module__ = "tlspin.constants"

PINNED_CERTIFICATE_EXTENSIONS = (".cer", ".der", ".crt")
DEFAULT_BUNDLE_ENV = "TLSPIN_BUNDLE"
DEFAULT_BUNDLE_PATH = "certificates"

# longest chain the evaluator will hand to the validator
MAX_CHAIN_LENGTH = 16

DEFAULT_REVOCATION_MODE = "soft-fail"
REVOCATION_MODES = ["soft-fail", "hard-fail", "require"]
WEAK_HASH_ALGORITHMS = {"md2", "md5", "sha1"}

SPKI_PIN_PREFIX = "sha256/"

RESULT_LEVEL_PASS = "pass"
RESULT_LEVEL_FAIL = "fail"
RESULT_LEVEL_WARN = "warn"
RESULT_LEVEL_INFO = "info"
RESULT_LEVEL_PASS_DEFAULT = "TRUSTED"
RESULT_LEVEL_FAIL_DEFAULT = "REJECTED"
RESULT_LEVEL_WARN_DEFAULT = "WARNING"
RESULT_LEVEL_INFO_DEFAULT = "INFO"
DEFAULT_MAP = {
    RESULT_LEVEL_PASS: RESULT_LEVEL_PASS_DEFAULT,
    RESULT_LEVEL_FAIL: RESULT_LEVEL_FAIL_DEFAULT,
    RESULT_LEVEL_WARN: RESULT_LEVEL_WARN_DEFAULT,
    RESULT_LEVEL_INFO: RESULT_LEVEL_INFO_DEFAULT,
}

CLI_COLOR_PASS = "dark_sea_green2"
CLI_COLOR_FAIL = "light_coral"
CLI_COLOR_WARN = "khaki1"
CLI_COLOR_INFO = "deep_sky_blue2"
CLI_COLOR_MAP = {
    RESULT_LEVEL_PASS: CLI_COLOR_PASS,
    RESULT_LEVEL_FAIL: CLI_COLOR_FAIL,
    RESULT_LEVEL_WARN: CLI_COLOR_WARN,
    RESULT_LEVEL_INFO: CLI_COLOR_INFO,
}
