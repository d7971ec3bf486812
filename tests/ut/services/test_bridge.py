"""凭据桥接测试"""

from __future__ import annotations

from urllib.parse import urlsplit

import pytest

from gitbridge.core.exceptions import MalformedURLError, UnsupportedTransportError
from gitbridge.core.models import OAUTH2_USERNAME, Credential, Token, Transport
from gitbridge.services.auth.bridge import to_auth_options, to_credential, transport_for_scheme

CRED = Credential(username=OAUTH2_USERNAME, password="tok123")


class TestToCredential:
    def test_sentinel_username_and_verbatim_password(self) -> None:
        cred = to_credential(Token(access_token="  tok 123\n", expires_in=3600, token_type="Bearer"))
        assert cred.username == "oauth2accesstoken"
        assert cred.password == "  tok 123\n"


class TestTransportForScheme:
    @pytest.mark.parametrize(("scheme", "expected"), [
        ("http", Transport.HTTP), ("https", Transport.HTTP), ("ssh", Transport.SSH),
    ])
    def test_known(self, scheme: str, expected: Transport) -> None:
        assert transport_for_scheme(scheme) is expected

    @pytest.mark.parametrize("scheme", ["ftp", "file", "git", "HTTPS", ""])
    def test_unsupported(self, scheme: str) -> None:
        with pytest.raises(UnsupportedTransportError):
            transport_for_scheme(scheme)


class TestToAuthOptions:
    def test_https_secure(self) -> None:
        opts = to_auth_options(CRED, "https://source.developers.google.com/p/proj/r/repo")
        assert opts.transport is Transport.HTTP
        assert opts.insecure_http is False
        assert opts.host == "source.developers.google.com"
        assert opts.data == {"username": b"oauth2accesstoken", "password": b"tok123"}

    def test_http_sets_insecure_flag(self) -> None:
        opts = to_auth_options(CRED, "http://git.internal/repo.git")
        assert opts.transport is Transport.HTTP
        assert opts.insecure_http is True

    def test_ssh(self) -> None:
        opts = to_auth_options(CRED, "ssh://git@source.developers.google.com:2022/p/proj/r/repo",
                               known_hosts=b"host key")
        assert opts.transport is Transport.SSH
        assert opts.insecure_http is False
        assert opts.data["known_hosts"] == b"host key"

    def test_ftp_unsupported(self) -> None:
        with pytest.raises(UnsupportedTransportError, match="ftp"):
            to_auth_options(CRED, "ftp://example.com/repo")

    def test_pre_parsed_url(self) -> None:
        opts = to_auth_options(CRED, urlsplit("https://eu.gcr.io/repo"))
        assert opts.host == "eu.gcr.io"

    def test_malformed(self) -> None:
        with pytest.raises(MalformedURLError):
            to_auth_options(CRED, "not a url")

    def test_secret_not_in_error(self) -> None:
        with pytest.raises(UnsupportedTransportError) as exc:
            to_auth_options(CRED, "ftp://example.com/repo")
        assert "tok123" not in str(exc.value)
