"""
Dependency Errors

Exception taxonomy shared by the registry, detection, installation
and degradation layers. Every error carries a message that can be shown
to the user as-is.
"""

from typing import Optional


class DependencyError(Exception):
    """Base class for all dependency-system errors"""
    pass


class ConfigurationError(DependencyError):
    """Configuration-related errors"""
    pass


class RegistryLoadError(DependencyError):
    """Registry file could not be read or parsed (fatal for the session)"""
    pass


class ToolNotInRegistry(DependencyError):
    """Requested tool is not part of the registry"""

    def __init__(self, tool: str):
        self.tool = tool
        super().__init__(f"Tool '{tool}' is not in the registry")


class NoSuitableManager(DependencyError):
    """No installed package manager can provide the tool"""

    def __init__(self, tool: str, reason: Optional[str] = None):
        self.tool = tool
        self.reason = reason or "no available package manager declares a package for it"
        super().__init__(f"Cannot install '{tool}': {self.reason}")


class PermissionDenied(DependencyError):
    """Package manager requires privileges the current user does not have"""

    def __init__(self, manager: str):
        self.manager = manager
        super().__init__(
            f"Package manager '{manager}' requires root privileges; "
            f"run as root or configure sudo"
        )


class VersionUnparseable(DependencyError):
    """Version text did not contain a recognisable version number"""

    def __init__(self, text: str, tool: Optional[str] = None):
        self.text = text
        self.tool = tool
        subject = f"for '{tool}' " if tool else ""
        super().__init__(f"Could not parse version {subject}from: {text!r}")


class VersionIncompatible(DependencyError):
    """Detected version falls outside the declared bounds"""

    def __init__(self, tool: str, version: str, bound: str):
        self.tool = tool
        self.version = version
        self.bound = bound
        super().__init__(f"'{tool}' version {version} does not satisfy {bound}")


class InvalidOperator(DependencyError):
    """Compatibility checker was given an unknown operator or malformed bound"""

    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Invalid version operator or bound: {value!r}")


class InstallTimeout(DependencyError):
    """Installation command exceeded the configured timeout"""

    def __init__(self, tool: str, timeout: int):
        self.tool = tool
        self.timeout = timeout
        super().__init__(f"Installation of '{tool}' timed out after {timeout} seconds")


class InstallFailed(DependencyError):
    """Installation command exited unsuccessfully"""

    def __init__(self, tool: str, output: str = ""):
        self.tool = tool
        self.output = output
        message = f"Installation of '{tool}' failed"
        if output:
            message += f": {output.strip()}"
        super().__init__(message)


class CacheCorrupt(DependencyError):
    """A status cache entry could not be decoded"""

    def __init__(self, line_no: int, reason: str):
        self.line_no = line_no
        self.reason = reason
        super().__init__(f"Corrupt cache entry at line {line_no}: {reason}")
