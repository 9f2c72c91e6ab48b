"""Auth model 테스트"""

from datetime import datetime, timezone

from oxa.auth.models import TokenCredential


class TestTokenCredential:

    def test_repr_hides_token(self):
        credential = TokenCredential(access_token="gho_secret")
        assert "gho_secret" not in repr(credential)

    def test_round_trip_keeps_only_token(self):
        credential = TokenCredential(
            access_token="gho_secret", obtained_at=datetime.now(timezone.utc)
        )
        loaded = TokenCredential.from_dict(credential.to_dict())

        assert loaded.access_token == "gho_secret"
        assert loaded.obtained_at is None
