import re
from enum import Enum, auto
from dataclasses import dataclass
from typing import List, Optional, Any
from sigconf.diagnostics import Span, DiagnosticEngine, DiagnosticKind

class TokenType(Enum):
    # Keywords
    UNTYPED = auto()
    TOP = auto()
    BOT = auto()
    VOID = auto()
    BOOL = auto()
    BOOLISH = auto()
    NIL = auto()
    SELF = auto()
    INSTANCE = auto()
    CLASS = auto()
    TRUE = auto()
    FALSE = auto()
    SINGLETON = auto()

    # Literals
    INTEGER = auto()
    STRING = auto()
    SYMBOL = auto()
    IDENTIFIER = auto()

    # Operators & Punctuation
    ARROW = auto()      # ->
    FATARROW = auto()   # =>
    STARSTAR = auto()   # **
    STAR = auto()       # *
    QUESTION = auto()   # ?
    PIPE = auto()       # |
    AMPERSAND = auto()  # &
    CARET = auto()      # ^
    DOT = auto()        # .
    LPAREN = auto()     # (
    RPAREN = auto()     # )
    LBRACKET = auto()   # [
    RBRACKET = auto()   # ]
    LBRACE = auto()     # {
    RBRACE = auto()     # }
    COLONCOLON = auto() # ::
    COLON = auto()      # :
    COMMA = auto()      # ,

    # Special
    EOF = auto()
    ERROR = auto()

KEYWORDS = {
    "untyped": TokenType.UNTYPED,
    "top": TokenType.TOP,
    "bot": TokenType.BOT,
    "void": TokenType.VOID,
    "bool": TokenType.BOOL,
    "boolish": TokenType.BOOLISH,
    "nil": TokenType.NIL,
    "self": TokenType.SELF,
    "instance": TokenType.INSTANCE,
    "class": TokenType.CLASS,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "singleton": TokenType.SINGLETON,
}

# Keywords that name a base type
BASE_TOKENS = {
    TokenType.TOP, TokenType.BOT, TokenType.VOID, TokenType.BOOL, TokenType.BOOLISH,
    TokenType.NIL, TokenType.SELF, TokenType.INSTANCE, TokenType.CLASS,
}

@dataclass
class Token:
    type: TokenType
    lexeme: str
    span: Span
    value: Optional[Any] = None

    @property
    def is_word(self) -> bool:
        """Identifiers and keywords; both may be used as parameter or keyword names."""
        return self.type == TokenType.IDENTIFIER or self.lexeme in KEYWORDS

class Lexer:
    PATTERNS = [
        (TokenType.ARROW, re.compile(r'->')),
        (TokenType.FATARROW, re.compile(r'=>')),
        (TokenType.STARSTAR, re.compile(r'\*\*')),
        (TokenType.STAR, re.compile(r'\*')),
        (TokenType.QUESTION, re.compile(r'\?')),
        (TokenType.PIPE, re.compile(r'\|')),
        (TokenType.AMPERSAND, re.compile(r'&')),
        (TokenType.CARET, re.compile(r'\^')),
        (TokenType.DOT, re.compile(r'\.')),
        (TokenType.LPAREN, re.compile(r'\(')),
        (TokenType.RPAREN, re.compile(r'\)')),
        (TokenType.LBRACKET, re.compile(r'\[')),
        (TokenType.RBRACKET, re.compile(r'\]')),
        (TokenType.LBRACE, re.compile(r'\{')),
        (TokenType.RBRACE, re.compile(r'\}')),
        (TokenType.COLONCOLON, re.compile(r'::')),
        (TokenType.SYMBOL, re.compile(r':(?:[A-Za-z_][A-Za-z0-9_]*|"[^"]*"|\'[^\']*\')')),
        (TokenType.COLON, re.compile(r':')),
        (TokenType.COMMA, re.compile(r',')),

        (TokenType.INTEGER, re.compile(r'-?\d+')),
        (TokenType.STRING, re.compile(r'"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\'')),
        (TokenType.IDENTIFIER, re.compile(r'[A-Za-z_][A-Za-z0-9_]*')),
    ]
    SKIP_PATTERN = re.compile(r'\s+')

    def __init__(self, source: str, diagnostics: DiagnosticEngine):
        self.source = source
        self.diagnostics = diagnostics
        self.tokens: List[Token] = []
        self.current_pos = 0
        self.line = 1
        self.column = 1

    def tokenize(self) -> List[Token]:
        while self.current_pos < len(self.source):
            match = self.SKIP_PATTERN.match(self.source, self.current_pos)
            if match:
                self._advance(match.end() - self.current_pos)
                continue

            matched = False
            for token_type, regex in self.PATTERNS:
                if token_type == TokenType.SYMBOL and self._follows_word():
                    # `key:Integer` is a keyword, not the symbol :Integer
                    continue
                match = regex.match(self.source, self.current_pos)
                if match:
                    lexeme = match.group(0)
                    span = Span(self.current_pos, self.current_pos + len(lexeme), self.line, self.column)

                    value = None
                    if token_type == TokenType.INTEGER:
                        value = int(lexeme)
                    elif token_type == TokenType.STRING:
                        value = _unquote(lexeme)
                    elif token_type == TokenType.SYMBOL:
                        name = lexeme[1:]
                        value = _unquote(name) if name[0] in "\"'" else name
                    elif token_type == TokenType.IDENTIFIER:
                        token_type = KEYWORDS.get(lexeme, TokenType.IDENTIFIER)

                    self.tokens.append(Token(token_type, lexeme, span, value))
                    self._advance(len(lexeme))
                    matched = True
                    break

            if not matched:
                char = self.source[self.current_pos]
                span = Span(self.current_pos, self.current_pos + 1, self.line, self.column)
                self.diagnostics.error(DiagnosticKind.SYNTAX, f"Unexpected character: '{char}'",
                                       signature=self.source, span=span)
                self.tokens.append(Token(TokenType.ERROR, char, span))
                self._advance(1)

        span = Span(self.current_pos, self.current_pos, self.line, self.column)
        self.tokens.append(Token(TokenType.EOF, "", span))
        return self.tokens

    def _follows_word(self) -> bool:
        if self.current_pos == 0:
            return False
        previous = self.source[self.current_pos - 1]
        return previous.isalnum() or previous == "_"

    def _advance(self, amount: int):
        text = self.source[self.current_pos : self.current_pos + amount]
        for char in text:
            if char == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        self.current_pos += amount

def _unquote(lexeme: str) -> str:
    body = lexeme[1:-1]
    return re.sub(r'\\(.)', r'\1', body)
