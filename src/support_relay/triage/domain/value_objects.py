"""
Triage Value Objects
====================

Stateless helpers for the triage domain.

- MarkupFormatter: escaping and emphasis for the messenger markup dialect
- FaqMatcher: ordered substring lookup in the FAQ table
- ReplyComposer: auto-reply template and staff ticket message
- KnowledgePromptBuilder: system prompt for knowledge-grounded answers
"""

import html
import re
from dataclasses import dataclass
from typing import Optional, Sequence

from support_relay.config import FaqEntry, LanguageStrings, ParseMode
from support_relay.triage.domain.entities import IncomingMessage, Ticket

_MARKDOWN_SPECIAL = re.compile(r"([_*`\[])")
_MARKDOWN_V2_SPECIAL = re.compile(r"([_*\[\]()~`>#+\-=|{}.!\\])")


class MarkupFormatter:
    """
    Escaping and emphasis for one markup dialect.

    Escaping is for user-controlled text only. FAQ answers and LLM answers
    carry intentional formatting and are inserted verbatim.
    """

    def __init__(self, parse_mode: str = ParseMode.MARKDOWN):
        if parse_mode not in (ParseMode.MARKDOWN, ParseMode.MARKDOWN_V2, ParseMode.HTML):
            raise ValueError(f"Unsupported parse mode: {parse_mode}")
        self.parse_mode = parse_mode

    def escape(self, text: str) -> str:
        if self.parse_mode == ParseMode.HTML:
            return html.escape(text, quote=False)
        if self.parse_mode == ParseMode.MARKDOWN_V2:
            return _MARKDOWN_V2_SPECIAL.sub(r"\\\1", text)
        return _MARKDOWN_SPECIAL.sub(r"\\\1", text)

    def literal(self, text: str) -> str:
        """
        Fixed template text (language strings, ticket labels, ids).

        Legacy Markdown sends it as configured; MarkdownV2 and HTML reserve
        characters such as `#`, `(` and `.`, so there it is escaped.
        """
        if self.parse_mode == ParseMode.MARKDOWN:
            return text
        return self.escape(text)

    def emphasis(self, text: str) -> str:
        if self.parse_mode == ParseMode.HTML:
            return f"<b>{html.escape(text, quote=False)}</b>"
        if self.parse_mode == ParseMode.MARKDOWN_V2:
            return f"*{self.escape(text)}*"
        return f"*{text}*"


def escape_markup(text: str, parse_mode: str = ParseMode.MARKDOWN) -> str:
    """Escape user-controlled text for the given markup dialect."""
    return MarkupFormatter(parse_mode).escape(text)


class FaqMatcher:
    """
    First-match-wins lookup over the configured FAQ table.

    Order in the table is the tie-break, so more specific fragments go first.
    """

    def __init__(self, entries: Sequence[FaqEntry], case_sensitive: bool = False):
        self._case_sensitive = case_sensitive
        self._entries = [
            (entry.question if case_sensitive else entry.question.casefold(), entry.answer)
            for entry in entries
        ]

    def match(self, text: str) -> Optional[str]:
        haystack = text if self._case_sensitive else text.casefold()
        for fragment, answer in self._entries:
            if fragment in haystack:
                return answer
        return None


@dataclass(frozen=True)
class ReplyComposer:
    """Builds user-facing auto-replies and staff-facing ticket messages."""
    language: LanguageStrings
    formatter: MarkupFormatter

    def auto_reply(self, display_name: str, answer: str) -> str:
        """
        Wrap an answer in the greeting/signature template.

        The display name is escaped; the answer is not.
        """
        lang, fmt = self.language, self.formatter
        return (
            f"{fmt.literal(lang.dear)} {fmt.escape(display_name)},\n\n"
            f"{answer}\n\n"
            f"{fmt.literal(lang.regards)}\n"
            f"{fmt.literal(lang.automated_reply_author)}\n\n"
            f"{self.formatter.emphasis(lang.automated_reply)}"
        )

    def staff_message(self, ticket: Ticket, message: IncomingMessage, auto_replied: bool) -> str:
        lang, fmt = self.language, self.formatter
        text = (
            f"{fmt.literal(f'{lang.ticket} {ticket.label} {lang.from_}')} "
            f"{fmt.escape(message.display_name)} {fmt.literal(f'({message.user_id})')}\n"
            f"{fmt.literal(f'{lang.language}: {message.language_code}')}\n\n"
            f"{fmt.escape(message.text)}"
        )
        if auto_replied:
            text += f"\n\n{self.formatter.emphasis(lang.automated_reply_sent)}"
        return text

    def confirmation(self, ticket: Ticket, show_ticket: bool) -> str:
        fmt = self.formatter
        text = f"{fmt.literal(self.language.confirmation_message)}\n"
        if show_ticket:
            text += fmt.literal(ticket.label)
        return text

    def spam_notice(self) -> str:
        return self.formatter.literal(self.language.blocked_spam)


class KnowledgePromptBuilder:
    """
    Builds the system prompt for knowledge-grounded answers.

    All prompt logic in one place.
    """

    DEFAULT_SYSTEM_PROMPT = (
        "You are a Support Agent. You have been assigned to help the user based on "
        "the message and only the provided knowledge base.\n"
        "If the knowledge base does not contain the information needed to answer the "
        "user's question, you should respond with \"null\".\n"
        "Answer truthfully and to the best of your ability. Answer without salutation "
        "and greetings.\n"
        "Format your response using Telegram Markdown syntax (not MarkdownV2). Use *bold* "
        "for emphasis and _italic_ for subtle emphasis.\n"
        "Do not use emojis in your responses. Keep formatting simple and clean."
    )

    KNOWLEDGE_DELIMITER = '"""'

    @classmethod
    def build_system_prompt(cls, knowledge: str, system_prompt: Optional[str] = None) -> str:
        """Instructions first, then the knowledge base fenced off by the delimiter."""
        instructions = system_prompt or cls.DEFAULT_SYSTEM_PROMPT
        return (
            f"{instructions}\n\n"
            f"Knowledgebase: {cls.KNOWLEDGE_DELIMITER}\n"
            f"{knowledge}\n"
            f"{cls.KNOWLEDGE_DELIMITER}"
        )

    @classmethod
    def build_messages(cls, text: str, knowledge: str, system_prompt: Optional[str] = None) -> list[dict]:
        return [
            {"role": "system", "content": cls.build_system_prompt(knowledge, system_prompt)},
            {"role": "user", "content": text},
        ]
