"""Rank inventory rows by how closely their location matches a request.

Request locations are ``province_district_ward`` strings, e.g.
``hanoi_dongda_langha``. Inventory locations are free text
(``"123 Dong Da, Hanoi"``). Both sides are folded to lower-case, accent-free
words. A request token scores one point when it occurs inside a single
inventory word, or spells out a run of whole consecutive words
(``dongda`` matches ``Dong Da``). It never matches part of one word
joined to part of the next, so ``daha`` does not match
``"Dong Da, Hanoi"``.
"""
import unicodedata

LOCATION_SEPARATOR = '_'


def _words(text):
    text = unicodedata.normalize('NFKD', text.lower().replace('đ', 'd'))
    kept = ''.join(ch if ch.isalnum() else ' ' for ch in text if not unicodedata.combining(ch))
    return kept.split()


def location_tokens(location):
    """Non-empty, folded tokens of a request location, in order"""
    if not location:
        return []
    tokens = (''.join(_words(part)) for part in location.split(LOCATION_SEPARATOR))
    return [token for token in tokens if token]


def _matches_words(token, words):
    if any(token in word for word in words):
        return True
    for start in range(len(words)):
        run = ''
        for word in words[start:]:
            run += word
            if run == token:
                return True
            if not token.startswith(run):
                break
    return False


def _score_tokens(tokens, inventory_location):
    if not tokens or not inventory_location:
        return 0
    words = _words(inventory_location)
    return sum(1 for token in tokens if _matches_words(token, words))


def score_location(request_location, inventory_location):
    """Number of request location tokens contained in the inventory location.

    >>> score_location('hanoi_dongda_', '123 Dong Da, Hanoi')
    2
    >>> score_location('', 'anything')
    0
    """
    return _score_tokens(location_tokens(request_location), inventory_location)


def select_best_inventory(request_location, candidates):
    """Pick the best inventory row out of ``candidates``.

    Highest score wins. Equal scores go to the row with the oldest
    ``last_updated`` so stock rotates first-in-first-out; when nothing
    scores above zero the first row in repository order is kept.
    ``candidates`` is consumed once, so a streamed query works.
    """
    tokens = location_tokens(request_location)
    best, best_score = None, -1
    for inventory in candidates:
        score = _score_tokens(tokens, inventory.location)
        if score > best_score:
            best, best_score = inventory, score
        elif score == best_score and inventory.last_updated < best.last_updated:
            best = inventory
    return best
