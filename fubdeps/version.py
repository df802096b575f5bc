"""
Version Detection and Compatibility

- SemVer triplets parsed from arbitrary tool output
- Range operators: = == != > >= < <= ~ ^
- VersionDetector running a tool with its version flags
"""

import logging
import re
from typing import Callable, NamedTuple, Optional, Tuple

from .errors import InvalidOperator, VersionUnparseable

logger = logging.getLogger(__name__)

VERSION_PATTERN = re.compile(r'(\d+)(?:\.(\d+))?(?:\.(\d+))?')
TRIPLET_PATTERN = re.compile(r'(\d+)\.(\d+)\.(\d+)')
CONSTRAINT_PATTERN = re.compile(r'^\s*(==|!=|>=|<=|=|>|<|~|\^)?\s*(.+?)\s*$')
BOUND_PATTERN = re.compile(r'v?\d+(?:\.\d+){0,2}')

VERSION_FLAGS = ('--version', '-V', '-v')

OPERATORS = ('=', '==', '!=', '>', '>=', '<', '<=', '~', '^')


class SemVer(NamedTuple):
    """major.minor.patch triplet, ordered lexicographically"""
    major: int
    minor: int = 0
    patch: int = 0

    @classmethod
    def parse(cls, text: str) -> 'SemVer':
        """
        Extract the first version number from text

        Missing minor/patch components default to 0.

        Raises:
            VersionUnparseable: no digits found
        """
        match = VERSION_PATTERN.search(str(text))
        if not match:
            raise VersionUnparseable(str(text))
        major, minor, patch = match.groups()
        return cls(int(major), int(minor or 0), int(patch or 0))

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def _bound(value) -> SemVer:
    """Strict parse of a constraint bound: [v]major[.minor[.patch]] and nothing else"""
    if isinstance(value, SemVer):
        return value
    text = str(value).strip()
    if not BOUND_PATTERN.fullmatch(text):
        raise InvalidOperator(str(value))
    return SemVer.parse(text)


def validate_bound(value) -> None:
    """Raise InvalidOperator unless value is a well-formed bound"""
    _bound(value)


def compare(version, operator: str, bound) -> bool:
    """
    Evaluate ``version <operator> bound``

    ``~`` accepts the same major.minor with patch >= bound.patch.
    ``^`` accepts the same major with a newer minor, or the same minor
    and patch >= bound.patch.

    Raises:
        InvalidOperator: unknown operator or unparseable bound
        VersionUnparseable: version itself cannot be parsed
    """
    if operator not in OPERATORS:
        raise InvalidOperator(operator)

    target = _bound(bound)
    current = version if isinstance(version, SemVer) else SemVer.parse(version)

    if operator in ('=', '=='):
        return current == target
    if operator == '!=':
        return current != target
    if operator == '>':
        return current > target
    if operator == '>=':
        return current >= target
    if operator == '<':
        return current < target
    if operator == '<=':
        return current <= target
    if operator == '~':
        return (current.major == target.major
                and current.minor == target.minor
                and current.patch >= target.patch)
    # '^'
    return current.major == target.major and (
        current.minor > target.minor
        or (current.minor == target.minor and current.patch >= target.patch)
    )


def parse_constraint(constraint: str) -> Tuple[str, SemVer]:
    """Split '>=1.2.0' into ('>=', SemVer(1, 2, 0)); a bare version means '>='"""
    match = CONSTRAINT_PATTERN.match(constraint or '')
    if not match:
        raise InvalidOperator(constraint)
    operator, bound = match.groups()
    return operator or '>=', _bound(bound)


def satisfies(version, constraint: str) -> bool:
    operator, bound = parse_constraint(constraint)
    return compare(version, operator, bound)


def is_compatible(version, min_version: Optional[str] = None,
                  max_version: Optional[str] = None) -> bool:
    """version >= min (when set) and version <= max (when set)"""
    if min_version and not compare(version, '>=', min_version):
        return False
    if max_version and not compare(version, '<=', max_version):
        return False
    return True


def extract_version(output: str) -> Optional[str]:
    """First major.minor.patch triplet in output, or None"""
    match = TRIPLET_PATTERN.search(output or '')
    if not match:
        return None
    return str(SemVer(*(int(part) for part in match.groups())))


class VersionDetector:
    """Runs a tool's version flags and extracts its semantic version"""

    def __init__(self, runner: Callable = None, timeout: int = 5):
        """
        Args:
            runner: callable(argv, timeout) -> (success, stdout, stderr);
                    defaults to PlatformUtils.run_command
            timeout: timeout per version flag in seconds
        """
        if runner is None:
            from .platform_utils import PlatformUtils
            runner = PlatformUtils.run_command
        self.runner = runner
        self.timeout = timeout

    def detect(self, path: str) -> Optional[str]:
        """
        Run ``path`` with each version flag in turn

        Returns:
            Normalized 'major.minor.patch' string, or None when no flag
            produced a parseable version
        """
        for flag in VERSION_FLAGS:
            _, stdout, stderr = self.runner([path, flag], timeout=self.timeout)
            # Some tools print their version on stderr or exit non-zero
            version = extract_version(f"{stdout}\n{stderr}")
            if version:
                logger.debug(f"🔍 {path} {flag} -> {version}")
                return version

        logger.debug(f"No parseable version reported by {path}")
        return None
