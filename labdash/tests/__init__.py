'''
Laboratory Dashboard Backend Test Suite

Test Modules:
-------------
- test_classification.py: specimen code sets, province grouping and the
  nearby override, rejection mnemonics, lab-number exclusion
- test_windows.py: date window parsing and inclusive bounds
- test_queries.py: SQL builders, parameter binding, partition union
- test_gateway.py: connection checkout/release on every exit path
- test_aggregation.py: rankings, rates, volume gate, province comparison,
  monthly/cumulative counts, summary card
- test_shaping.py: grouping of padded values, envelopes, error bodies
- test_api.py: routes, 400/500 translation, detail redaction

Running Tests:
--------------
    pip install -e ".[test]"
    pytest

No test needs a live database; fixtures in conftest.py bind the repository
to a counting fake pool (see fakes.py).
'''

__all__ = []
