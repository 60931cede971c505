from unittest.mock import Mock

import pytest

from vocabtocards.anki import AddNoteOutcome, AnkiConnectClient, AnkiConnectionError
from vocabtocards.importer import ImportResult, VocabImporter, summarize
from vocabtocards.partitioner import CsvSliceParser
from vocabtocards.vocab import Topic, Word, iter_topics

_DUPLICATE_ERROR = "cannot create note because it is a duplicate"


def _make_importer(**kwargs):
    client = Mock(spec=AnkiConnectClient)
    client.timeout = 10.0
    return VocabImporter(deck_name="Japanese", client=client, **kwargs), client


# ============
# Note content
# ============
def test_word_with_kanji_to_note():
    importer, _ = _make_importer()
    note = importer.word_to_note(
        Word("おどろく", "to be surprised", "驚く"), topic_name="verbs"
    )
    assert note.deck_name == "Japanese::verbs"
    assert note.model_name == "Basic"
    assert note.fields == {"Front": "驚く", "Back": "おどろく | to be surprised"}
    assert note.tags == ["verbs", "japanese", "vocabulary"]
    assert note.options.allow_duplicate is False
    assert note.options.duplicate_scope_options.deck_name == "Japanese::verbs"


def test_word_without_kanji_to_note():
    importer, _ = _make_importer()
    note = importer.word_to_note(Word("ここ", "here", " "), topic_name="places")
    assert note.fields == {"Front": "ここ", "Back": "here"}


def test_note_without_topic_goes_to_main_deck():
    importer, _ = _make_importer(extra_tags=[])
    note = importer.word_to_note(Word("ここ", "here", ""), topic_name="")
    assert note.deck_name == "Japanese"
    assert note.tags == []


def test_topic_tag_has_no_spaces():
    importer, _ = _make_importer(extra_tags=["jp"])
    note = importer.word_to_note(Word("ここ", "here", ""), topic_name="N5  places")
    assert note.tags == ["N5_places", "jp"]
    assert note.deck_name == "Japanese::N5  places"


def test_with_model_and_url_return_copies():
    importer, client = _make_importer()
    other = importer.with_model("Basic (and reversed card)").with_url(
        "http://other:8765"
    )
    assert importer.model_name == "Basic"
    assert importer.client is client
    assert other.model_name == "Basic (and reversed card)"
    assert other.client.url == "http://other:8765"
    assert other.deck_name == "Japanese"


# ===============
# Deck management
# ===============
def test_initialise_creates_main_deck():
    importer, client = _make_importer()
    client.check_connection.return_value = 6
    client.create_deck.return_value = 1
    assert importer.initialise() == 1
    client.create_deck.assert_called_once_with("Japanese")


def test_initialise_explains_connection_failure():
    importer, client = _make_importer()
    client.check_connection.side_effect = AnkiConnectionError("refused")
    with pytest.raises(AnkiConnectionError, match="Is Anki running"):
        importer.initialise()
    client.create_deck.assert_not_called()


def test_initialise_with_topics_creates_subdecks():
    importer, client = _make_importer()
    client.check_connection.return_value = 6
    client.create_deck.side_effect = [1, 2, 3]
    deck_ids = importer.initialise_with_topics(["verbs", "adjectives", "verbs"])
    assert deck_ids == {
        "Japanese": 1,
        "Japanese::verbs": 2,
        "Japanese::adjectives": 3,
    }


# ======
# Import
# ======
def test_import_word():
    importer, client = _make_importer()
    client.add_note.return_value = 99
    assert importer.import_word(Word("ここ", "here", ""), "places") == 99
    sent_note = client.add_note.call_args.args[0]
    assert sent_note.deck_name == "Japanese::places"


def test_import_topic_counts_outcomes():
    importer, client = _make_importer()
    client.add_notes.return_value = [
        AddNoteOutcome(note_id=1),
        AddNoteOutcome(note_id=2),
        AddNoteOutcome(note_id=3),
        AddNoteOutcome(error=_DUPLICATE_ERROR),
        AddNoteOutcome(error="model was not found"),
        AddNoteOutcome(error="deck was not found"),
    ]
    topic = Topic(name="verbs", words=[Word(str(i), "", "") for i in range(6)])
    result = importer.import_topic(topic)
    assert result == ImportResult(
        topic_name="verbs", added=3, duplicates=1, errors=2
    )
    assert result.total == 6
    assert not result.is_failed
    sent_notes = client.add_notes.call_args.args[0]
    assert [n.fields["Front"] for n in sent_notes] == [str(i) for i in range(6)]


def test_import_all_topics():
    importer, client = _make_importer()
    client.add_notes.side_effect = lambda notes: [
        AddNoteOutcome(note_id=i) for i, _ in enumerate(notes)
    ]
    topics = [
        Topic(name="verbs", words=[Word("a", "", ""), Word("b", "", "")]),
        Topic(name="nouns", words=[]),
    ]
    results = importer.import_all_topics(topics)
    assert [(r.topic_name, r.added) for r in results] == [
        ("verbs", 2),
        ("nouns", 0),
    ]


def test_import_lazy_topics_isolates_decode_errors():
    importer, client = _make_importer()
    client.add_notes.side_effect = lambda notes: [
        AddNoteOutcome(note_id=i) for i, _ in enumerate(notes)
    ]
    parser = CsvSliceParser.from_records(
        headers=["verbs", "", "", "nouns", "", "", "adjectives", "", ""],
        records=[
            ["たべる", "to eat", "食べる", "ほん", "book", "本", "はやい", "fast"],
        ],
    )
    results = importer.import_lazy_topics(iter_topics(parser))
    assert [r.topic_name for r in results] == ["verbs", "nouns", "adjectives"]
    assert results[0].added == 1
    assert results[1].added == 1
    assert results[2].is_failed
    assert results[2].decode_error == "Missing kanji field"
    assert results[2].total == 0
    assert "failed" in results[2].summary()
    # Nothing sent for the failed topic
    assert client.add_notes.call_count == 2


def test_summarize():
    total = summarize(
        [
            ImportResult("a", added=3, duplicates=1, errors=0),
            ImportResult("b", added=0, duplicates=0, errors=2),
            ImportResult("c", decode_error="Missing kanji field"),
        ]
    )
    assert (total.added, total.duplicates, total.errors) == (3, 1, 2)
    assert total.summary() == (
        "all topics: added=3, duplicates=1, errors=2, total=6"
    )


def test_import_topic_with_repeated_word_counts_duplicate():
    # AnkiConnect checks notes against the collection only, and refuses a
    # whole addNotes call holding the same note twice
    session = Mock()

    def post(url, json, timeout):
        action = json["action"]
        if action == "canAddNotesWithErrorDetail":
            payload = {
                "result": [{"canAdd": True} for _ in json["params"]["notes"]],
                "error": None,
            }
        elif action == "addNotes":
            fronts = [n["fields"]["Front"] for n in json["params"]["notes"]]
            if len(set(fronts)) != len(fronts):
                payload = {"result": None, "error": f"['{_DUPLICATE_ERROR}']"}
            else:
                payload = {"result": list(range(1, len(fronts) + 1)), "error": None}
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = payload
        return response

    session.post.side_effect = post
    importer = VocabImporter(
        deck_name="Japanese", client=AnkiConnectClient(session=session)
    )
    topic = Topic(
        name="verbs",
        words=[
            Word("たべる", "to eat", "食べる"),
            Word("たべる", "to eat", "食べる"),
            Word("のむ", "to drink", "飲む"),
        ],
    )
    result = importer.import_topic(topic)
    assert result == ImportResult(topic_name="verbs", added=2, duplicates=1)
