from __future__ import annotations

import unittest

from thread_unroll.errors import (
    BadInputError,
    ConfigError,
    InvalidResponseError,
    NotFoundOrInaccessibleError,
    RateLimitedError,
    TraversalTooLongError,
    UnreachableError,
)
from thread_unroll.outcomes import INTERNAL_ERROR, outcome_for


class TestOutcomes(unittest.TestCase):
    def test_each_error_kind_has_its_own_outcome(self) -> None:
        expected = {
            BadInputError: (400, 2),
            NotFoundOrInaccessibleError: (404, 3),
            RateLimitedError: (429, 4),
            UnreachableError: (503, 5),
            InvalidResponseError: (502, 6),
            TraversalTooLongError: (422, 7),
            ConfigError: (500, 8),
        }
        for kind, (status, exit_code) in expected.items():
            with self.subTest(kind=kind.__name__):
                outcome = outcome_for(kind("detail"))
                self.assertEqual(outcome.status, status)
                self.assertEqual(outcome.exit_code, exit_code)

    def test_unexpected_errors_are_internal(self) -> None:
        self.assertIs(outcome_for(KeyError("x")), INTERNAL_ERROR)
        self.assertEqual(INTERNAL_ERROR.status, 500)
        self.assertEqual(INTERNAL_ERROR.exit_code, 1)

    def test_outcome_never_echoes_error_detail(self) -> None:
        outcome = outcome_for(UnreachableError("upstream said: secret token abc"))
        self.assertNotIn("secret", outcome.title)
        self.assertNotIn("secret", outcome.message)


if __name__ == "__main__":
    unittest.main()
