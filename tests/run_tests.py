"""
Test runner for the vision filter project.
"""

import os
import sys
import unittest


def run_all_tests():
    """Run all tests in the tests directory."""
    # The modules live at the project root
    sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

    test_loader = unittest.TestLoader()
    test_suite = test_loader.discover(os.path.dirname(__file__))

    test_runner = unittest.TextTestRunner(verbosity=2)
    result = test_runner.run(test_suite)

    return result.wasSuccessful()


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)
