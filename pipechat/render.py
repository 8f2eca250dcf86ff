"""Output rendering for pipechat.

Replies are written to a plain text stream (stdout in the CLI). Diagnostics
never go through here.
"""

import errno
import logging
from typing import AsyncIterator, TextIO

from .errors import BrokenOutputPipeError, RenderError
from .models import OutputFormat
from .replies import ChatCompletion, Fragment, assemble_reply

logger = logging.getLogger(__name__)


class OutputRenderer:
    """Writes a reply, or a stream of fragments, in one output format.

    - ``text``: the reply content followed by one newline. Streamed
      fragments are written and flushed as they arrive.
    - ``json`` / ``json-pretty``: one JSON document, written only once the
      reply is complete (streams are drained and re-assembled first).
    - ``ndjson``: one compact JSON line per fragment, flushed per line.
    """

    def __init__(self, output_format: OutputFormat, out: TextIO) -> None:
        self.output_format = output_format
        self.out = out

    def render_reply(self, reply: ChatCompletion) -> None:
        """Render a complete reply."""
        if self.output_format is OutputFormat.TEXT:
            self._write(reply.text + "\n")
        elif self.output_format is OutputFormat.JSON_PRETTY:
            self._write(reply.model_dump_json(indent=2, exclude_none=True) + "\n")
        else:
            # json, and ndjson of an unstreamed reply: one compact line
            self._write(reply.model_dump_json(exclude_none=True) + "\n")

    async def render_stream(self, fragments: AsyncIterator[Fragment]) -> int:
        """Consume a fragment stream, rendering as it goes.

        Returns:
            Number of fragments consumed.
        """
        count = 0
        if self.output_format is OutputFormat.TEXT:
            async for fragment in fragments:
                count += 1
                if fragment.content:
                    self._write(fragment.content)
            self._write("\n")
        elif self.output_format is OutputFormat.NDJSON:
            async for fragment in fragments:
                count += 1
                self._write(fragment.model_dump_json(exclude_none=True) + "\n")
        else:
            collected = []
            async for fragment in fragments:
                collected.append(fragment)
            count = len(collected)
            self.render_reply(assemble_reply(collected))

        logger.debug("Rendered %d fragment(s) as %s", count, self.output_format.value)
        return count

    def _write(self, text: str) -> None:
        try:
            self.out.write(text)
            self.out.flush()
        except BrokenPipeError as e:
            raise BrokenOutputPipeError(e) from e
        except OSError as e:
            if e.errno == errno.EPIPE:
                raise BrokenOutputPipeError(e) from e
            raise RenderError(f"failed to write output: {e}") from e
