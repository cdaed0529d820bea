import io
import logging
import unittest

from log_setup import NOISY_LOGGERS, setup_logging


class SetupLoggingTest(unittest.TestCase):
    def setUp(self):
        root = logging.getLogger()
        self.saved = (root.level, list(root.handlers))
        self.saved_libs = {name: logging.getLogger(name).level for name in NOISY_LOGGERS}

    def tearDown(self):
        root = logging.getLogger()
        level, handlers = self.saved
        for handler in list(root.handlers):
            root.removeHandler(handler)
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)
        for name, lib_level in self.saved_libs.items():
            logging.getLogger(name).setLevel(lib_level)

    def test_writes_to_given_stream(self):
        out = io.StringIO()
        setup_logging("info", stream=out)
        logging.getLogger("librarify").info("measured %s", "Fixture")
        logging.getLogger("librarify").debug("hidden")
        text = out.getvalue()
        self.assertIn("[INFO] librarify: measured Fixture", text)
        self.assertNotIn("hidden", text)

    def test_reconfigure_replaces_handler(self):
        first, second = io.StringIO(), io.StringIO()
        setup_logging("WARNING", stream=first)
        setup_logging("WARNING", stream=second)
        logging.getLogger("img2ascii").warning("once")
        self.assertEqual(first.getvalue(), "")
        self.assertIn("once", second.getvalue())

    def test_library_loggers_quiet_unless_debug(self):
        setup_logging("INFO", stream=io.StringIO())
        for name in NOISY_LOGGERS:
            self.assertEqual(logging.getLogger(name).level, logging.WARNING)
        setup_logging("DEBUG", stream=io.StringIO())
        for name in NOISY_LOGGERS:
            self.assertEqual(logging.getLogger(name).level, logging.DEBUG)

    def test_invalid_level(self):
        with self.assertRaises(ValueError):
            setup_logging("LOUD")


if __name__ == "__main__":
    unittest.main()
