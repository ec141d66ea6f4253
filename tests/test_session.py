import unittest

from volt_browser.session import Session, normalize_prefix


class SessionTests(unittest.TestCase):
    def test_normalize_prefix(self):
        self.assertEqual("", normalize_prefix(""))
        self.assertEqual("", normalize_prefix("/"))
        self.assertEqual("docs/", normalize_prefix("docs"))
        self.assertEqual("docs/2024/", normalize_prefix("/docs/2024/"))

    def test_navigate_and_reset(self):
        session = Session(bucket="bucket-one")

        session.navigate("docs")
        self.assertEqual("docs/", session.current_path)
        self.assertTrue(session.is_connected)

        session.reset()
        self.assertIsNone(session.bucket)
        self.assertEqual("", session.current_path)
        self.assertFalse(session.is_connected)


if __name__ == "__main__":
    unittest.main()
