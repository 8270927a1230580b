# Test package; helpers are imported as `tests.helpers`.
