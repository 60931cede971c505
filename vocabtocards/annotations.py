from typing import Annotated

Cell = Annotated[str, "Content of one csv cell"]
ColumnIndex = Annotated[int, "Zero-based column index"]
SliceIndex = Annotated[int, "Zero-based index of a column slice"]
TopicName = Annotated[str, "Name of a topic, from the header"]
DeckName = Annotated[str, "Anki deck name, subdecks separated by ::"]
NoteId = Annotated[int, "Anki note id"]
DeckId = Annotated[int, "Anki deck id"]
FilePath = Annotated[str, "Path to a file"]
