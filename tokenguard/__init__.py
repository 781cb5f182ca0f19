"""tokenguard - account credentials and one-time tokens.

Entry points:
    from tokenguard.core.config import AccountsConfig, Settings
    from tokenguard.services.account_service import AccountService
    from tokenguard.services.token_lifecycle import TokenLifecycle
    from tokenguard.services.token_cleanup import TokenCleanup
"""

__version__ = "0.1.0"
