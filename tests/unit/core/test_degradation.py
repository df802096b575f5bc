"""Tests for fubdeps/degradation.py"""

from unittest.mock import patch

import pytest

from fubdeps.cache import STATUS_INCOMPATIBLE, STATUS_NOT_INSTALLED, STATUS_OUTDATED
from fubdeps.degradation import (
    DegradationManager, LEVEL_BASIC, LEVEL_FULL, LEVEL_UNAVAILABLE,
    MODE_CORE_ONLY, MODE_FULL, MODE_MINIMAL, MODE_REDUCED,
    compute_mode, find_command, first_choice, text_confirm,
)
from tests.utils import make_registry, make_status, make_tool

CORE = ('gum', 'fd', 'ripgrep', 'btop')
ENHANCED = ('bat', 'exa', 'dust', 'duf', 'procs')


@pytest.fixture
def manager(registry, cache):
    return DegradationManager(registry, cache)


def _install(cache, clock, *tools, status='installed'):
    for tool in tools:
        cache.put(make_status(tool, status, checked=clock(), path=f'/usr/bin/{tool}'))


class TestComputeMode:
    """Test cases for the mode thresholds"""

    @pytest.mark.parametrize('core,enhanced,mode', [
        (1.0, 1.0, MODE_FULL),
        (0.8, 0.6, MODE_FULL),
        (0.8, 0.59, MODE_REDUCED),
        (0.8, 0.3, MODE_REDUCED),
        (0.8, 0.29, MODE_MINIMAL),
        (0.79, 1.0, MODE_CORE_ONLY),
        (0.0, 0.0, MODE_CORE_ONLY),
    ])
    def test_thresholds(self, core, enhanced, mode):
        assert compute_mode(core, enhanced) == mode


class TestAnalyze:
    """Test cases for DegradationManager.analyze"""

    def test_everything_installed(self, manager, cache, clock):
        _install(cache, clock, *CORE, *ENHANCED, 'lazygit')
        state = manager.analyze()
        assert state.mode == MODE_FULL
        assert state.core_ratio == 1.0
        assert state.missing_capabilities == frozenset()
        assert state.active_fallbacks == frozenset()

    def test_core_boundary(self, cache, clock):
        """80% of core tools installed is enough, 79% is not"""
        core = [make_tool(f'core{i}', 'core') for i in range(100)]
        registry = make_registry(*core)
        manager = DegradationManager(registry, cache, features=())

        _install(cache, clock, *(tool.name for tool in core[:80]))
        assert manager.analyze().mode == MODE_FULL

        cache.invalidate('core79')
        assert manager.analyze().core_ratio == 0.79
        assert manager.analyze().mode == MODE_CORE_ONLY

    def test_reduced_and_minimal(self, manager, cache, clock):
        _install(cache, clock, *CORE, 'bat', 'exa')
        assert manager.analyze().mode == MODE_REDUCED

        cache.invalidate('exa')
        assert manager.analyze().mode == MODE_MINIMAL

    def test_outdated_counts_incompatible_does_not(self, manager, cache, clock):
        _install(cache, clock, *CORE, *ENHANCED, status=STATUS_OUTDATED)
        assert manager.analyze().mode == MODE_FULL

        _install(cache, clock, 'gum', status=STATUS_INCOMPATIBLE)
        assert manager.analyze().mode == MODE_CORE_ONLY

    def test_missing_features(self, manager, cache, clock):
        _install(cache, clock, 'gum', 'fd', 'btop', 'dust', 'bat')
        state = manager.analyze()
        assert state.missing_capabilities == frozenset({'advanced-git-ui'})
        assert state.active_fallbacks == frozenset({'git-ui:basic'})

    def test_nothing_known(self, manager):
        state = manager.analyze()
        assert state.mode == MODE_CORE_ONLY
        assert len(state.missing_capabilities) == 6

    def test_pure_function_of_cache(self, manager, cache, clock):
        _install(cache, clock, *CORE, 'bat')
        assert manager.analyze() == manager.analyze()

    def test_empty_category_counts_as_complete(self, cache):
        registry = make_registry(make_tool('gum', 'core'))
        manager = DegradationManager(registry, cache, features=())
        assert manager.analyze().enhanced_ratio == 1.0


class TestFallbacks:
    """Test cases for fallback activation"""

    def test_activate_is_idempotent(self, manager, cache, clock):
        _install(cache, clock, *CORE)
        first = manager.activate_fallbacks()
        second = manager.activate_fallbacks()
        assert first == second
        assert 'storage:basic' in first
        assert manager.active_fallbacks == first

    def test_fallback_released_when_tool_returns(self, manager, cache, clock):
        manager.activate_fallbacks()
        assert 'interactive-ui:basic' in manager.active_fallbacks

        _install(cache, clock, 'gum')
        assert 'interactive-ui:basic' not in manager.activate_fallbacks()


class TestImplementation:
    """Test cases for primary/fallback implementation selection"""

    def test_fallback_when_tool_missing(self, manager, cache, clock):
        _install(cache, clock, 'fd', status=STATUS_NOT_INSTALLED)
        find_files = manager.implementation('advanced-search', 'find_files')
        assert find_files is find_command
        assert find_files('conf', '/etc') == ['find', '/etc', '-name', '*conf*']
        assert manager.uses_fallback('advanced-search', 'find_files')

    def test_primary_gets_resolved_path(self, manager, cache, clock):
        _install(cache, clock, 'fd')
        find_files = manager.implementation('advanced-search', 'find_files')
        assert find_files('conf', '/etc') == ['/usr/bin/fd', 'conf', '/etc']
        assert not manager.uses_fallback('advanced-search', 'find_files')

    def test_choice_per_action(self, manager, cache, clock):
        _install(cache, clock, 'fd')
        assert manager.uses_fallback('advanced-search', 'search_text')
        search = manager.implementation('advanced-search', 'search_text')
        assert search('TODO') == ['grep', '-r', 'TODO', '.']

    def test_monitor_fallback(self, manager):
        assert manager.implementation('advanced-monitoring', 'monitor')() == ['top', '-b', '-n', '1']

    def test_interactive_fallbacks(self, manager):
        confirm = manager.implementation('interactive-ui', 'confirm')
        assert confirm is text_confirm
        assert manager.implementation('interactive-ui', 'choose') is first_choice

    def test_gum_confirm_primary(self, manager, cache, clock):
        _install(cache, clock, 'gum')
        confirm = manager.implementation('interactive-ui', 'confirm')
        with patch('fubdeps.degradation.subprocess.run') as mock_run:
            mock_run.return_value.returncode = 0
            assert confirm('Install?') is True
        assert mock_run.call_args[0][0] == ['/usr/bin/gum', 'confirm', 'Install?']

    def test_unknown_action(self, manager):
        with pytest.raises(KeyError):
            manager.implementation('advanced-search', 'teleport')


class TestFeatureLevels:
    """Test cases for feature availability reporting"""

    def test_watched_feature(self, manager, cache, clock):
        assert manager.feature_level('advanced-search') == LEVEL_BASIC
        _install(cache, clock, 'ripgrep')
        assert manager.is_feature_available('advanced-search')
        assert manager.feature_level('advanced-search') == LEVEL_FULL

    def test_other_feature_follows_mode(self, manager, cache, clock):
        assert manager.feature_level('reporting') == LEVEL_UNAVAILABLE
        _install(cache, clock, *CORE)
        assert manager.feature_level('reporting') == LEVEL_FULL

    def test_improvement_suggestions(self, manager, cache, clock):
        _install(cache, clock, 'fd', 'ripgrep', 'btop', *ENHANCED)
        assert manager.improvement_suggestions() == [('gum', 'Beautiful dialogs')]

    def test_summary(self, manager, cache, clock):
        _install(cache, clock, *CORE, 'bat', 'exa')
        summary = manager.summary()
        assert summary['mode'] == MODE_REDUCED
        assert summary['core_ratio'] == 100
        assert summary['enhanced_ratio'] == 40


class TestTextConfirm:
    """Test cases for the plain prompt fallback"""

    @pytest.mark.parametrize('answer,expected', [('y', True), ('YES', True), ('', False), ('n', False)])
    def test_answers(self, answer, expected):
        assert text_confirm('Proceed?', input_func=lambda prompt: answer) is expected

    def test_eof(self):
        def closed(prompt):
            raise EOFError

        assert text_confirm('Proceed?', input_func=closed) is False
