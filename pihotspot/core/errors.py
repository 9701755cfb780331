class HotspotError(RuntimeError):
    """Base for every fatal setup failure."""


class ConfigError(HotspotError):
    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class PrivilegeError(HotspotError):
    pass


class InterfaceNotFoundError(HotspotError):
    def __init__(self, interface: str):
        self.interface = interface
        super().__init__(f"WiFi interface {interface} not found. Please check your hardware.")


class CommandError(HotspotError):
    def __init__(self, cmd, output: str = "", returncode: int = 1):
        self.cmd = list(cmd)
        self.output = output
        self.returncode = returncode
        detail = f": {output.strip()}" if output.strip() else ""
        super().__init__(f"`{' '.join(self.cmd)}` exited with {returncode}{detail}")


class PackageInstallError(CommandError):
    pass


class ServiceStartError(CommandError):
    pass


class ConfigWriteError(HotspotError):
    def __init__(self, path: str, reason: str):
        self.path = path
        super().__init__(f"could not write {path}: {reason}")


class ConnectivityWarning(UserWarning):
    pass


class VerificationMismatch(UserWarning):
    def __init__(self, check: str, expected: str, actual: str):
        self.check = check
        self.expected = expected
        self.actual = actual
        super().__init__(f"{check}: expected {expected!r}, got {actual!r}")
