import pytest

from linkscope.config import SCORE_KEYS
from linkscope.models import FilterConfig


@pytest.fixture
def default_filter():
    return FilterConfig.default(SCORE_KEYS)


@pytest.fixture
def sample_payload():
    """One component: three refs, a uid owning two of them, an operator of one."""
    return {
        "components": [
            {
                "nodes": [
                    {"id": "op1", "labels": ["Operator"]},
                    {"id": "uid1", "labels": ["UID"]},
                    {"id": "p1", "labels": ["Person"]},
                    {"id": "r1", "labels": ["Ref"], "props": {"id": "REF-1"}},
                    {"id": "r2", "labels": ["Ref"]},
                    {"id": "r3", "labels": ["Ref"]},
                ],
                "relationships": [
                    {
                        "id": "m1",
                        "startId": "r1",
                        "endId": "r2",
                        "type": "MATCHES",
                        "props": {"face_score": 0.9, "left_index_score": 0.1},
                    },
                    {"id": "m2", "startId": "r2", "endId": "r3", "type": "MATCHES", "props": {"face_score": 0.2}},
                    {"id": "b1", "startId": "r1", "endId": "uid1", "type": "BELONGS_TO"},
                    {"id": "b2", "startId": "r3", "endId": "uid1", "type": "BELONGS_TO"},
                    {"id": "o1", "startId": "r1", "endId": "op1", "type": "OPERATED_BY"},
                    {"id": "x1", "startId": "uid1", "endId": "p1", "type": "KNOWS"},
                ],
            }
        ]
    }
