from __future__ import annotations

import copy
import logging
import pickle

import pytest

from datasync_api.secret import Secret


def test_secret_is_masked_everywhere() -> None:
    secret = Secret("hunter2")

    assert "hunter2" not in repr(secret)
    assert "hunter2" not in str(secret)
    assert "hunter2" not in f"{secret}"
    assert "hunter2" not in "%s" % secret
    assert secret.reveal() == "hunter2"


def test_secret_is_not_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)
    logging.getLogger("tests").info("credential=%s %r", Secret("hunter2"), Secret("hunter2"))

    assert "hunter2" not in caplog.text


def test_secret_cannot_be_copied_or_pickled() -> None:
    secret = Secret("hunter2")

    with pytest.raises(TypeError):
        copy.copy(secret)
    with pytest.raises(TypeError):
        copy.deepcopy(secret)
    with pytest.raises(TypeError):
        pickle.dumps(secret)


def test_secret_truthiness_and_equality() -> None:
    assert not Secret("")
    assert Secret("a")
    assert Secret("a") == Secret("a")
    assert Secret("a") != Secret("b")
    with pytest.raises(TypeError):
        Secret(123)  # type: ignore[arg-type]
