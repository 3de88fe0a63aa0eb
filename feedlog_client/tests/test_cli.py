import io
import unittest
from contextlib import redirect_stderr

from feedlog_client.cli import build_parser


class ParserTests(unittest.TestCase):
    def test_amount_is_parsed_as_number(self):
        args = build_parser().parse_args(["add", "150"])
        self.assertEqual(args.amount, 150)
        args = build_parser().parse_args(["edit", "r1", "--amount", "92.5"])
        self.assertEqual(args.amount, 92.5)

    def test_non_finite_amount_is_rejected(self):
        for bad in ("nan", "inf", "Infinity"):
            with redirect_stderr(io.StringIO()) as err, self.assertRaises(SystemExit):
                build_parser().parse_args(["add", bad])
            self.assertIn("finite", err.getvalue())


if __name__ == "__main__":
    unittest.main()
