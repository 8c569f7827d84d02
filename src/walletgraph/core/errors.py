class WalletGraphError(Exception):
    pass


class NetworkError(WalletGraphError):
    pass


class MalformedRecord(WalletGraphError):
    pass


class PreferencesError(WalletGraphError):
    pass
