""" Validation and matching of topic expressions. A topic expression is a
    slash-separated sequence of chunks, such as ``demo/example/zat``, which
    may include wildcards:

    ``*``
        matches exactly one chunk.

    ``**``
        matches zero or more chunks.

    ``$*``
        matches any (possibly empty) substring within a single chunk, for
        example ``sensor$*`` matches both ``sensor`` and ``sensor12``.

    Expressions are only accepted in their canonical form: ``**/**`` must be
    written ``**``, ``**/*`` must be written ``*/**``, and a chunk consisting
    solely of ``$*`` must be written ``*``.
"""

import functools


forbidden = set('#?')
separator = '/'
wild_chunk = '*'
wild_chunks = '**'
wild_sub = '$*'


class ValidationError(ValueError):
    """ Raised when a string is not a well-formed topic expression. The
        *offending* attribute is the substring that failed validation.
    """

    def __init__(self, message, offending):
        ValueError.__init__(self, message)
        self.offending = offending


# end of class ValidationError



class TopicExpression(str):
    """ A validated, immutable topic expression. Instances can only be
        created from well-formed input; a malformed string raises
        :class:`ValidationError` rather than being corrected.
    """

    __slots__ = ()

    def __new__(cls, raw):

        if isinstance(raw, TopicExpression):
            return raw

        if not isinstance(raw, str):
            raise TypeError('topic expressions must be strings, not ' + type(raw).__name__)

        _check(raw)
        return str.__new__(cls, raw)


    def __repr__(self):
        return 'TopicExpression(' + str.__repr__(self) + ')'


    @property
    def chunks(self):
        return tuple(self.split(separator))


    @property
    def is_wild(self):
        """ True if any chunk of this expression is or contains a wildcard.
        """

        return '*' in self


    @property
    def literal_prefix(self):
        """ Return the leading portion of the expression that contains no
            wildcards. This is what a transport can filter on; for an
            expression without wildcards the whole expression is returned.
        """

        if self.is_wild == False:
            return str(self)

        # A '**' can match zero chunks, so 'a/**' must still see
        # the key 'a' itself: no separator is appended in that case.

        literal = list()
        for chunk in self.chunks:
            if chunk == wild_chunks:
                break
            if '*' in chunk:
                if chunk == wild_chunk:
                    literal.append('')
                else:
                    literal.append(chunk.split(wild_sub, 1)[0])
                break
            literal.append(chunk)

        return separator.join(literal)


    def intersects(self, other):
        """ Return True if at least one concrete key is matched by both this
            expression and *other*.
        """

        other = TopicExpression(other)
        return _chunks_intersect(self.chunks, other.chunks)


# end of class TopicExpression



def validate(raw):
    """ Return a :class:`TopicExpression` for the *raw* string, raising
        :class:`ValidationError` if it is not well-formed.
    """

    return TopicExpression(raw)



def _check(raw):

    if raw == '':
        raise ValidationError('empty topic expression', raw)

    if raw.startswith(separator) or raw.endswith(separator):
        raise ValidationError("topic expression cannot start or end with '/': " + repr(raw), raw)

    for character in raw:
        if character in forbidden:
            raise ValidationError('forbidden character %r in topic expression %r' % (character, raw), character)
        if character.isspace() or ord(character) < 0x20 or ord(character) == 0x7f:
            raise ValidationError('whitespace or control character in topic expression ' + repr(raw), character)

    chunks = raw.split(separator)
    previous = None

    for chunk in chunks:
        if chunk == '':
            raise ValidationError('empty chunk in topic expression ' + repr(raw), separator + separator)

        _check_chunk(chunk)

        if previous == wild_chunks and chunk == wild_chunks:
            raise ValidationError("'**/**' is not canonical, use '**'", wild_chunks + separator + wild_chunks)

        if previous == wild_chunks and chunk == wild_chunk:
            raise ValidationError("'**/*' is not canonical, use '*/**'", wild_chunks + separator + wild_chunk)

        previous = chunk



def _check_chunk(chunk):

    if chunk == wild_chunk or chunk == wild_chunks:
        return

    if chunk == wild_sub:
        raise ValidationError("a chunk of only '$*' is not canonical, use '*'", chunk)

    # Remove the sub-chunk wildcards; anything left over must be free of
    # both '*' and '$'.

    if wild_sub + wild_sub in chunk:
        raise ValidationError("'$*$*' is not canonical, use '$*'", chunk)

    remainder = chunk.replace(wild_sub, '')

    if '*' in remainder:
        raise ValidationError("'*' must be a whole chunk or part of '$*': " + repr(chunk), chunk)

    if '$' in remainder:
        raise ValidationError("'$' may only appear as '$*': " + repr(chunk), chunk)



@functools.lru_cache(maxsize=1024)
def _chunks_intersect(left, right):

    if len(left) == 0:
        return all(chunk == wild_chunks for chunk in right)

    if len(right) == 0:
        return all(chunk == wild_chunks for chunk in left)

    if left[0] == wild_chunks:
        # Either the '**' matches nothing, or it swallows the first chunk
        # on the other side and keeps going.
        return _chunks_intersect(left[1:], right) or _chunks_intersect(left, right[1:])

    if right[0] == wild_chunks:
        return _chunks_intersect(left, right[1:]) or _chunks_intersect(left[1:], right)

    if _chunk_intersects(left[0], right[0]):
        return _chunks_intersect(left[1:], right[1:])

    return False



def _chunk_intersects(left, right):

    if left == wild_chunk or right == wild_chunk:
        return True

    if left == right:
        return True

    return _glob_intersects(_tokenize(left), _tokenize(right))



def _tokenize(chunk):
    """ Split a chunk into a tuple of single characters, with each ``$*``
        represented by None.
    """

    tokens = list()
    pieces = chunk.split(wild_sub)
    last = len(pieces) - 1

    for index, piece in enumerate(pieces):
        tokens.extend(piece)
        if index != last:
            tokens.append(None)

    return tuple(tokens)



@functools.lru_cache(maxsize=4096)
def _glob_intersects(left, right):

    if len(left) == 0:
        return all(token is None for token in right)

    if len(right) == 0:
        return all(token is None for token in left)

    if left[0] is None:
        return _glob_intersects(left[1:], right) or _glob_intersects(left, right[1:])

    if right[0] is None:
        return _glob_intersects(left, right[1:]) or _glob_intersects(left[1:], right)

    if left[0] == right[0]:
        return _glob_intersects(left[1:], right[1:])

    return False


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
