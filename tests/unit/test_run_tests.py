"""Tests for run_tests.py"""

import sys

import pytest

from run_tests import TESTS_DIR, build_parser, pytest_command


def _command(*argv):
    return pytest_command(build_parser().parse_args(list(argv)))


class TestRunTests:
    """Test cases for the pytest command builder"""

    def test_defaults(self):
        assert _command() == [sys.executable, '-m', 'pytest', '-m', 'not slow', str(TESTS_DIR)]

    def test_markers_combined(self):
        cmd = _command('--unit', '--core', '--slow')
        assert cmd[cmd.index('-m') + 1] == 'unit and core'

    def test_coverage_reports(self):
        cmd = _command('--coverage', '--html-coverage')
        assert '--cov=fubdeps' in cmd
        assert '--cov-report=html:tests/coverage_html' in cmd
        assert '--cov-report=xml:tests/coverage.xml' in cmd

    def test_paths_replace_tests_dir(self):
        cmd = _command('-q', '--lf', 'tests/unit/core/test_cache.py')
        assert cmd[-3:] == ['-q', '--lf', 'tests/unit/core/test_cache.py']
        assert str(TESTS_DIR) not in cmd

    @pytest.mark.parametrize('argv', [
        ['--unit', '--integration'],
        ['--core', '--common'],
        ['-v', '-q'],
        ['--lf', '--ff'],
    ])
    def test_contradictory_switches_rejected(self, argv):
        with pytest.raises(SystemExit):
            build_parser().parse_args(argv)

    def test_argument_groups(self):
        titles = [group.title for group in build_parser()._action_groups]
        assert {'selection', 'output', 'debugging'} <= set(titles)
