# storefront/domain/errors.py


class StorefrontError(Exception):
    """Bazowy blad klienta sklepu. retriable mowi UI czy pokazac 'sprobuj ponownie'."""

    retriable = False

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self) -> str:
        return self.message


class NetworkError(StorefrontError):
    """Brak odpowiedzi serwera (polaczenie, timeout)."""

    retriable = True


class ServerError(StorefrontError):
    """Odpowiedz 5xx."""

    retriable = True


class ValidationError(StorefrontError):
    """Odrzucenie regul biznesowych (4xx) albo lokalna walidacja wejscia."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        field_errors: dict[str, str] | None = None,
    ):
        super().__init__(message, status)
        self.field_errors = dict(field_errors or {})

    @classmethod
    def from_pydantic(cls, message: str, error) -> "ValidationError":
        """Bledy formularza z pydantic.ValidationError -> {pole: komunikat}."""
        field_errors = {".".join(str(p) for p in e["loc"]): e["msg"] for e in error.errors()}
        return cls(message, field_errors=field_errors)


class NotFoundError(ValidationError):
    pass


class ItemBusyError(StorefrontError):
    """Pozycja koszyka ma juz operacje w toku."""

    def __init__(self, item_id: int):
        super().__init__(f"Pozycja {item_id} jest w trakcie aktualizacji")
        self.item_id = item_id


class AuthError(StorefrontError):
    """401 po nieudanym odswiezeniu tokenu albo 403 - wymusza wylogowanie."""


class ResponseShapeError(StorefrontError):
    """Odpowiedz 2xx o nieoczekiwanym ksztalcie."""


class CheckoutError(StorefrontError):
    pass


class CheckoutStepError(CheckoutError):
    """Straznik przejscia miedzy krokami checkoutu odrzucil przejscie."""


class PaymentNotAttempted(CheckoutError):
    """Widget zamkniety / platnosc nieudana przed potwierdzeniem - mozna ponowic na tym samym zamowieniu."""

    retriable = True


class PaymentWidgetUnavailable(CheckoutError):
    """Nie udalo sie zaladowac widgetu bramki platnosci."""

    retriable = True


class PaymentVerificationFailed(CheckoutError):
    """
    Bramka zglosila sukces, ale serwer odrzucil potwierdzenie.
    Srodki moga byc pobrane - nigdy nie ponawiamy automatycznie.
    """

    requires_support = True


class OrderCreationUnclear(CheckoutError):
    """
    POST /orders przeszedl, ale odpowiedz jest nieuzywalna (brak gatewayOrderId / zly ksztalt).
    Zamowienie moglo powstac na serwerze - ponowienie wymaga nowej sesji checkoutu.
    """


class CartBusyError(StorefrontError):
    """Operacja na calym koszyku (dodanie / czyszczenie) jest w toku."""
