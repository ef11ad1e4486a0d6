import base64
import unittest

from paperframe.auth import (
    Allowed,
    Credentials,
    Denied,
    RequestContext,
    check_admin,
    check_authorization,
    is_admin,
    parse_basic_auth,
)
from paperframe.carousel import CarouselState


def basic(username: str, password: str) -> str:
    token = base64.b64encode(f"{username}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class ParseBasicAuthTests(unittest.TestCase):
    def test_parses_valid_header(self):
        self.assertEqual(
            parse_basic_auth(basic("admin", "secret")),
            Credentials(username="admin", password="secret"),
        )

    def test_scheme_is_case_insensitive_and_allows_padding_spaces(self):
        token = basic("admin", "secret").split(" ", 1)[1]
        creds = parse_basic_auth(f"  bAsIc   {token}  ")
        self.assertEqual(creds, Credentials("admin", "secret"))

    def test_password_may_contain_colons(self):
        creds = parse_basic_auth(basic("admin", "a:b:c"))
        self.assertEqual(creds.username, "admin")
        self.assertEqual(creds.password, "a:b:c")

    def test_empty_password_is_still_a_pair(self):
        self.assertEqual(parse_basic_auth(basic("admin", "")), Credentials("admin", ""))

    def test_non_ascii_credentials(self):
        creds = parse_basic_auth(basic("admin", "pässwörd"))
        self.assertEqual(creds.password, "pässwörd")

    def test_rejects_missing_or_empty_header(self):
        self.assertIsNone(parse_basic_auth(None))
        self.assertIsNone(parse_basic_auth(""))
        self.assertIsNone(parse_basic_auth("   "))

    def test_rejects_other_schemes(self):
        self.assertIsNone(parse_basic_auth("Bearer abc.def.ghi"))
        token = basic("admin", "secret").split(" ", 1)[1]
        self.assertIsNone(parse_basic_auth(f"Digest {token}"))

    def test_accepts_unpadded_token(self):
        self.assertEqual(
            parse_basic_auth("Basic YWRtaW46c2VjcmV0MQ"), Credentials("admin", "secret1")
        )
        self.assertEqual(
            parse_basic_auth("Basic YWRtaW46c2VjcmV0MTI"), Credentials("admin", "secret12")
        )

    def test_rejects_short_padding(self):
        self.assertIsNone(parse_basic_auth("Basic YWRtaW46c2VjcmV0MQ="))

    def test_rejects_malformed_base64(self):
        self.assertIsNone(parse_basic_auth("Basic abcde"))
        self.assertIsNone(parse_basic_auth("Basic a-b_c~d."))
        self.assertIsNone(parse_basic_auth("Basic !!!!"))

    def test_rejects_token_without_separator(self):
        token = base64.b64encode(b"adminsecret").decode("ascii")
        self.assertIsNone(parse_basic_auth(f"Basic {token}"))

    def test_rejects_trailing_garbage(self):
        self.assertIsNone(parse_basic_auth(basic("admin", "secret") + "\n"))
        self.assertIsNone(parse_basic_auth(basic("admin", "secret") + " extra"))


class IsAdminTests(unittest.TestCase):
    def test_matching_credentials(self):
        self.assertTrue(is_admin(Credentials("admin", "secret"), "admin", "secret"))

    def test_mismatches(self):
        self.assertFalse(is_admin(Credentials("admin", "wrong"), "admin", "secret"))
        self.assertFalse(is_admin(Credentials("root", "secret"), "admin", "secret"))
        self.assertFalse(is_admin(Credentials("Admin", "secret"), "admin", "secret"))
        self.assertFalse(is_admin(None, "admin", "secret"))

    def test_unconfigured_admin_never_matches(self):
        self.assertFalse(is_admin(Credentials("", ""), "", ""))
        self.assertFalse(is_admin(Credentials("admin", ""), "admin", ""))

    def test_check_authorization_from_header(self):
        self.assertTrue(check_authorization(basic("admin", "secret"), "admin", "secret"))
        self.assertFalse(check_authorization(basic("admin", "nope"), "admin", "secret"))
        self.assertFalse(check_authorization("Bearer token", "admin", "secret"))
        self.assertFalse(check_authorization(None, "admin", "secret"))


class GuardTests(unittest.TestCase):
    def test_authorized_context_continues(self):
        context = RequestContext(state=CarouselState(), authorized=True)
        result = check_admin(context)
        self.assertIsInstance(result, Allowed)
        self.assertIs(result.context, context)

    def test_unauthorized_context_is_denied(self):
        result = check_admin(RequestContext(state=CarouselState(), authorized=False))
        self.assertIsInstance(result, Denied)


if __name__ == "__main__":
    unittest.main()
