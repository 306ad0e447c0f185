"""
Default vendor records, as exported by Anki 25.02.

Exposed as factories returning fresh copies so callers can never mutate
the shared originals.
"""

import copy
from types import MappingProxyType
from typing import Any

from ..constants import DB_VERSION, DEFAULT_DECK_ID
from .models import AnkiCollection, AnkiDeck

_CONFIG = MappingProxyType(
    {
        "activeDecks": [1],
        "addToCur": True,
        "collapseTime": 1200,
        "creationOffset": -120,
        "curDeck": 1,
        "curModel": 1731670964298,
        "dayLearnFirst": False,
        "dueCounts": True,
        "estTimes": True,
        "newSpread": 0,
        "nextPos": 1,
        "sched2021": True,
        "schedVer": 2,
        "sortBackwards": False,
        "sortType": "noteFld",
        "timeLim": 0,
    }
)

_DECK_EXTRA = MappingProxyType(
    {
        "mod": 0,
        "usn": 0,
        "lrnToday": [0, 0],
        "revToday": [0, 0],
        "newToday": [0, 0],
        "timeToday": [0, 0],
        "collapsed": True,
        "browserCollapsed": True,
        "dyn": 0,
        "conf": 1,
        "extendNew": 0,
        "extendRev": 0,
        "reviewLimit": None,
        "newLimit": None,
        "reviewLimitToday": None,
        "newLimitToday": None,
    }
)

_DECK_CONFIG = MappingProxyType(
    {
        "id": 1,
        "mod": 0,
        "name": "Default",
        "usn": 0,
        "maxTaken": 60,
        "autoplay": True,
        "timer": 0,
        "replayq": True,
        "new": {
            "bury": False,
            "delays": [1.0, 10.0],
            "initialFactor": 2500,
            "ints": [1, 4, 0],
            "order": 1,
            "perDay": 20,
        },
        "rev": {
            "bury": False,
            "ease4": 1.3,
            "ivlFct": 1.0,
            "maxIvl": 36500,
            "perDay": 200,
            "hardFactor": 1.2,
        },
        "lapse": {
            "delays": [10.0],
            "leechAction": 1,
            "leechFails": 8,
            "minInt": 1,
            "mult": 0.0,
        },
        "dyn": False,
        "newMix": 0,
        "newPerDayMinimum": 0,
        "interdayLearningMix": 0,
        "reviewOrder": 0,
        "newSortOrder": 0,
        "newGatherPriority": 0,
        "buryInterdayLearning": False,
        "fsrsWeights": [],
        "desiredRetention": 0.9,
        "ignoreRevlogsBeforeDate": "",
        "stopTimerOnAnswer": False,
        "secondsToShowQuestion": 0.0,
        "secondsToShowAnswer": 0.0,
        "questionAction": 0,
        "answerAction": 0,
        "waitForAudio": True,
        "sm2Retention": 0.9,
        "weightSearch": "",
    }
)

CARD_CSS = (
    ".card {\n    font-family: arial;\n    font-size: 20px;\n    text-align: center;\n"
    "    color: black;\n    background-color: white;\n}\n"
)
CLOZE_CSS = CARD_CSS + (
    ".cloze {\n    font-weight: bold;\n    color: blue;\n}\n"
    ".nightMode .cloze {\n    color: lightblue;\n}\n"
)

_NOTE_TYPE_EXTRA = MappingProxyType(
    {
        "mod": 0,
        "usn": 0,
        "sortf": 0,
        "did": None,
        "css": CARD_CSS,
        "latexPre": (
            "\\documentclass[12pt]{article}\n\\special{papersize=3in,5in}\n"
            "\\usepackage[utf8]{inputenc}\n\\usepackage{amssymb,amsmath}\n"
            "\\pagestyle{empty}\n\\setlength{\\parindent}{0in}\n\\begin{document}\n"
        ),
        "latexPost": "\\end{document}",
        "latexsvg": False,
        "req": [[0, "any", [0]]],
        "originalStockKind": 1,
    }
)

_TEMPLATE_EXTRA = MappingProxyType(
    {"bqfmt": "", "bafmt": "", "did": None, "bfont": "", "bsize": 0, "id": None}
)

_FIELD_EXTRA = MappingProxyType(
    {
        "sticky": False,
        "rtl": False,
        "font": "Arial",
        "size": 20,
        "description": "",
        "plainText": False,
        "collapsed": False,
        "excludeFromSearch": False,
        "id": None,
        "tag": None,
        "preventDeletion": False,
    }
)


def default_config() -> dict[str, Any]:
    return copy.deepcopy(dict(_CONFIG))


def default_deck_extra() -> dict[str, Any]:
    return copy.deepcopy(dict(_DECK_EXTRA))


def default_note_type_extra() -> dict[str, Any]:
    return copy.deepcopy(dict(_NOTE_TYPE_EXTRA))


def default_template_extra() -> dict[str, Any]:
    return dict(_TEMPLATE_EXTRA)


def default_field_extra() -> dict[str, Any]:
    return dict(_FIELD_EXTRA)


def default_deck() -> AnkiDeck:
    return AnkiDeck(id=DEFAULT_DECK_ID, name="Default", desc="", extra=default_deck_extra())


def default_collection() -> AnkiCollection:
    """The ``col`` row of a freshly created, empty collection."""
    deck = default_deck()
    return AnkiCollection(
        id=1,
        crt=1681178400,
        mod=1731670964300,
        scm=1731670964297,
        ver=DB_VERSION,
        conf=default_config(),
        models={},
        decks={str(deck.id): deck},
        dconf={"1": copy.deepcopy(dict(_DECK_CONFIG))},
        tags={},
    )
