import enum


class NoteStatus(str, enum.Enum):
    pending = "En attente"
    grouped = "Groupé"
    processed = "Traité"


class GroupStatus(str, enum.Enum):
    pending = "En attente"
    processed = "Traité"
