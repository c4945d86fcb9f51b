"""Test helper modules for the Strata test suite.

- content: writers for topic, specialist, workflow and index files
- config: builders for LayerSpec / StrataConfig
- git_helpers: real git repositories for sync tests
- io_utils: YAML/JSON writers
- cache_utils: cache reset for test isolation
"""
