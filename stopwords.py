# stopwords.py
# Common English function words that carry no signal in a resume word count.

# Words of three letters or fewer are already dropped by the analyzer, but the
# short entries stay here so the list can be reused with a different cutoff.

STOP_WORDS = frozenset(
    {
        # --- Short function words ---
        "the", "and", "for", "are", "but", "not", "you", "all", "can", "had",
        "her", "was", "one", "our", "out", "day", "get", "has", "him", "his",
        "how", "its", "may", "new", "now", "old", "see", "two", "who", "boy",
        "did", "she", "use", "way",

        # --- Four letters and up ---
        "will", "with", "have", "this", "that", "from", "they", "know", "want",
        "been", "good", "much", "some", "time", "very", "when", "come", "here",
        "just", "like", "long", "make", "many", "over", "such", "take", "than",
        "them", "well", "were",
    }
)


def is_stop_word(word: str) -> bool:
    return word in STOP_WORDS
