import hashlib
import hmac
import time

import pytest

from paste_lib.config import Config
from paste_lib.model import (
    CommentNotFoundError,
    DuplicateCommentError,
    DuplicatePasteError,
    InvalidDataError,
    InvalidParentError,
    InvalidPasteIdError,
    MissingPasteError,
    Model,
    ParentDeletedError,
    PasteExpiredError,
    PasteNotFoundError,
    StorageFailureError,
    UnsupportedOperationError,
)
from paste_lib.storage.errors import BackendUnavailableError
from paste_lib.storage.keys import fnv1a64
from paste_lib.storage.memory_backend import MemoryStorage
from tests.helpers import COMMENT_ID, PASTE_ID, comment_post, legacy_paste, paste_post, stored_paste


class BrokenStorage(MemoryStorage):
    def read(self, paste_id):
        raise BackendUnavailableError("database went away")


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def model(store):
    return Model(Config(), store)


def _stored(model, post=None):
    paste = model.get_paste()
    paste.set_data(post or paste_post())
    paste.store()
    return paste


def test_paste_id_is_content_addressed(model):
    post = paste_post()
    paste = _stored(model, post)
    assert paste.id == fnv1a64(post["ct"])
    assert model.get_paste(paste.id).exists()


def test_stored_paste_round_trip(model, store):
    paste = _stored(model)
    meta = store.read(paste.id)["meta"]
    assert set(meta) == {"expire_date", "created", "salt"}
    assert meta["expire_date"] - meta["created"] == 300

    data = model.get_paste(paste.id).get()
    assert data["id"] == paste.id
    assert data["ct"] == paste_post()["ct"]
    assert 0 < data["meta"]["time_to_live"] <= 300
    assert set(data["meta"]) == {"time_to_live"}
    assert data["comments"] == []
    assert data["comment_count"] == 0
    assert data["comment_offset"] == 0


def test_never_expiring_paste_has_no_time_to_live(model):
    paste = _stored(model, paste_post(expire="never"))
    assert model.get_paste(paste.id).get()["meta"]["time_to_live"] is None


def test_unknown_expire_option_falls_back_to_default(model, store):
    paste = _stored(model, paste_post(expire="fortnight"))
    meta = store.read(paste.id)["meta"]
    assert meta["expire_date"] - meta["created"] == Config().expire_seconds("1week")


def test_duplicate_paste(model):
    _stored(model)
    with pytest.raises(DuplicatePasteError) as exc:
        _stored(model)
    assert exc.value.code == 75


@pytest.mark.parametrize("paste_id", ["", "foo", "../5b65a01b4398", "5B65A01B43987BC2"])
def test_invalid_paste_id(model, paste_id):
    with pytest.raises(InvalidPasteIdError) as exc:
        model.get_paste(paste_id)
    assert exc.value.code == 60


def test_missing_paste(model):
    paste = model.get_paste(PASTE_ID)
    assert paste.exists() is False
    with pytest.raises(PasteNotFoundError) as exc:
        paste.get()
    assert exc.value.code == 64


def test_expired_paste_is_deleted_on_access(model, store):
    store.create(PASTE_ID, stored_paste(expire_date=int(time.time()) - 10))
    with pytest.raises(PasteExpiredError) as exc:
        model.get_paste(PASTE_ID).get()
    assert exc.value.code == 63
    assert store.exists(PASTE_ID) is False


def test_burn_after_reading(model, store):
    paste = _stored(model, paste_post(opendiscussion=0, burnafterreading=1))
    assert model.get_paste(paste.id).get()["id"] == paste.id
    assert store.exists(paste.id) is False
    with pytest.raises(PasteNotFoundError):
        model.get_paste(paste.id).get()


@pytest.mark.parametrize(
    "post",
    [
        paste_post(formatter="foo"),
        paste_post(opendiscussion=2),
        paste_post(burnafterreading=-1),
        paste_post(opendiscussion=1, burnafterreading=1),
        {"v": 2},
    ],
)
def test_invalid_paste_data(model, post):
    with pytest.raises(InvalidDataError) as exc:
        model.get_paste().set_data(post)
    assert exc.value.code == 68


def test_open_discussion_needs_discussion_enabled(store):
    model = Model(Config(discussion=False), store)
    with pytest.raises(InvalidDataError):
        model.get_paste().set_data(paste_post(opendiscussion=1))


def test_store_without_data(model):
    with pytest.raises(InvalidDataError):
        model.get_paste().store()


def test_delete_token_uses_paste_salt(model, store):
    paste = _stored(model)
    salt = store.read(paste.id)["meta"]["salt"]
    expected = hmac.new(salt.encode(), paste.id.encode(), hashlib.sha256).hexdigest()
    assert paste.get_delete_token() == expected
    assert model.get_paste(paste.id).get_delete_token() == expected


def test_delete_token_of_legacy_paste_uses_server_salt(model, store):
    store.create(PASTE_ID, legacy_paste())
    token = model.get_paste(PASTE_ID).get_delete_token()
    server_salt = store.load_value("salt", "server")
    assert token == hmac.new(server_salt.encode(), PASTE_ID.encode(), hashlib.sha256).hexdigest()


def test_comment_flow(model):
    paste = _stored(model)
    comment = paste.get_comment(paste.id)
    post = comment_post(paste_id=paste.id)
    comment.set_data(post)
    comment.store()
    assert comment.id == fnv1a64(post["ct"])
    assert comment.exists()

    fetched = paste.get_comment(paste.id, comment.id).get()
    assert fetched["id"] == comment.id
    assert fetched["parentid"] == paste.id

    data = model.get_paste(paste.id).get()
    assert data["comment_count"] == 1
    assert data["comments"][0]["ct"] == post["ct"]
    assert "created" in data["comments"][0]["meta"]


def test_reply_to_a_comment(model):
    paste = _stored(model)
    first = paste.get_comment(paste.id)
    first.set_data(comment_post("first", paste_id=paste.id))
    first.store()
    reply = paste.get_comment(first.id)
    reply.set_data(comment_post("reply", paste_id=paste.id, parent_id=first.id))
    reply.store()
    parents = {c["id"]: c["parentid"] for c in paste.get_comments().values()}
    assert parents == {first.id: paste.id, reply.id: first.id}


def test_comment_dates_hidden_when_configured(store):
    model = Model(Config(discussion_date_display=False), store)
    paste = _stored(model)
    comment = paste.get_comment(paste.id)
    comment.set_data(comment_post(paste_id=paste.id))
    comment.store()
    assert "created" not in model.get_paste(paste.id).get()["comments"][0]["meta"]


def test_comment_icon_from_injected_generator(store):
    model = Model(Config(), store, hash_provider=lambda: "203.0.113.7", icon_generator=lambda h: f"icon:{h}")
    paste = _stored(model)
    comment = paste.get_comment(paste.id)
    comment.set_data(comment_post(paste_id=paste.id))
    comment.store()
    assert comment.get()["meta"]["icon"] == "icon:203.0.113.7"


def test_duplicate_comment(model):
    paste = _stored(model)
    first = paste.get_comment(paste.id)
    first.set_data(comment_post(paste_id=paste.id))
    first.store()
    again = paste.get_comment(paste.id)
    again.set_data(comment_post(paste_id=paste.id))
    with pytest.raises(DuplicateCommentError) as exc:
        again.store()
    assert exc.value.code == 69


def test_comment_on_closed_discussion(model):
    paste = _stored(model, paste_post(opendiscussion=0))
    comment = paste.get_comment(paste.id)
    comment.set_data(comment_post(paste_id=paste.id))
    with pytest.raises(InvalidDataError):
        comment.store()


def test_comment_when_discussion_disabled_later(store):
    paste = _stored(Model(Config(), store))
    closed = Model(Config(discussion=False), store)
    comment = closed.get_paste(paste.id).get_comment(paste.id)
    comment.set_data(comment_post(paste_id=paste.id))
    with pytest.raises(InvalidDataError):
        comment.store()


def test_invalid_comment_data(model):
    paste = _stored(model)
    with pytest.raises(InvalidDataError):
        paste.get_comment(paste.id).set_data(paste_post())


@pytest.mark.parametrize("parent_id", ["", "foo", None])
def test_invalid_parent(model, parent_id):
    paste = _stored(model)
    with pytest.raises(InvalidParentError) as exc:
        paste.get_comment(parent_id)
    assert exc.value.code == 65


def test_comment_on_deleted_paste(model):
    paste = _stored(model)
    comment = paste.get_comment(paste.id)
    comment.set_data(comment_post(paste_id=paste.id))
    paste.delete()
    with pytest.raises(ParentDeletedError) as exc:
        comment.store()
    assert exc.value.code == 67
    with pytest.raises(MissingPasteError) as exc:
        paste.get_comment(paste.id)
    assert exc.value.code == 62


def test_comment_on_unknown_paste(model):
    with pytest.raises(InvalidParentError) as exc:
        model.get_paste(PASTE_ID).get_comment(PASTE_ID)
    assert isinstance(exc.value, MissingPasteError)
    assert exc.value.code == 62


def test_missing_comment(model):
    paste = _stored(model)
    with pytest.raises(CommentNotFoundError) as exc:
        paste.get_comment(paste.id, COMMENT_ID).get()
    assert exc.value.code == 66


def test_comments_cannot_be_deleted(model):
    paste = _stored(model)
    with pytest.raises(UnsupportedOperationError) as exc:
        paste.get_comment(paste.id).delete()
    assert exc.value.code == 72


def test_storage_failure_is_translated():
    model = Model(Config(), BrokenStorage())
    with pytest.raises(StorageFailureError) as exc:
        model.get_paste(PASTE_ID).get()
    assert exc.value.code == 76
    assert isinstance(exc.value.__cause__, BackendUnavailableError)


def test_misconfigured_store_is_a_storage_failure():
    with pytest.raises(StorageFailureError):
        Model(Config(model="database", model_options={"dsn": "foo://"}))


def test_model_builds_configured_store(tmp_path):
    model = Model(Config(model="filesystem", model_options={"dir": str(tmp_path / "data")}))
    paste = _stored(model)
    assert (tmp_path / "data" / paste.id[0:2] / paste.id[2:4] / f"{paste.id}.json").is_file()
