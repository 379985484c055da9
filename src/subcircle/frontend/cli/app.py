"""Textual app for SubCircle.

Start here with `python -m subcircle.frontend.cli.app`
"""

from __future__ import annotations

from typing import Optional

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import (
    Button,
    Checkbox,
    Footer,
    Header,
    Input,
    Label,
    ListItem,
    ListView,
    Static,
)

from subcircle.core.exceptions import SubCircleError
from subcircle.core.models import (
    ConnectionStatus,
    CredentialData,
    OperationResult,
    ShareSettings,
    StreamingService,
    Subscription,
)
from subcircle.frontend.cli.clipboard import copy_to_clipboard
from subcircle.frontend.cli.context import AppContext, build_context
from subcircle.frontend.cli.feedback import describe


def _price(service_price) -> str:
    return f"${service_price}/mo" if service_price else "-"


# === Modal definitions ===


class CredentialFormResult:
    def __init__(self, credentials: CredentialData, master_password: str):
        self.credentials = credentials
        self.master_password = master_password


class CredentialInputModal(ModalScreen[Optional[CredentialFormResult]]):
    """Collect plaintext credentials plus the master password used to seal them."""

    def __init__(self, service_name: str, existing_hint: str | None = None):
        super().__init__()
        self.service_name = service_name
        self.existing_hint = existing_hint

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(f"{self.service_name} Credentials", classes="title")
            if self.existing_hint:
                yield Static(f"Current password hint: {self.existing_hint}", classes="hint", markup=False)
            yield Label("Username / Email")
            self.username_input = Input(placeholder="you@example.com")
            yield self.username_input
            yield Label("Password")
            self.password_input = Input(password=True)
            yield self.password_input
            yield Label("Notes (optional)")
            self.notes_input = Input()
            yield self.notes_input
            yield Label("Password Hint (optional)")
            self.hint_input = Input(placeholder="Something only your partners would know")
            yield self.hint_input
            yield Label("Master Password")
            self.master_input = Input(password=True)
            yield self.master_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Save", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.username_input)

    def _submit(self) -> None:
        username = self.username_input.value.strip()
        password = self.password_input.value
        master = self.master_input.value
        if not username or not password or not master:
            self.app.notify("Username, password and master password are required", severity="warning")
            return
        self.dismiss(
            CredentialFormResult(
                CredentialData(
                    username=username,
                    password=password,
                    notes=self.notes_input.value.strip() or None,
                    key_hint=self.hint_input.value.strip() or None,
                ),
                master,
            )
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
            return
        self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)


class MasterPasswordModal(ModalScreen[Optional[str]]):
    """Ask for the master password of a record, showing its hint if any."""

    def __init__(self, title: str, hint: str | None = None, owner_label: str | None = None):
        super().__init__()
        self.dialog_title = title
        self.hint = hint
        self.owner_label = owner_label

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(self.dialog_title, classes="title")
            if self.owner_label:
                yield Static(
                    f"These credentials are encrypted by {self.owner_label}. "
                    "You need their master password to view them."
                )
            if self.hint:
                yield Static(f"Password Hint: {self.hint}", classes="hint", markup=False)
            yield Label("Master Password (Enter to decrypt, Esc to cancel)")
            self.master_input = Input(password=True)
            yield self.master_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Decrypt (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.master_input)

    def _submit(self) -> None:
        if not self.master_input.value:
            self.app.notify("Master password is required", severity="warning")
            return
        self.dismiss(self.master_input.value)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
            return
        self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class CredentialsViewModal(ModalScreen[None]):
    """Show decrypted credentials with copy buttons."""

    def __init__(self, title: str, data: CredentialData):
        super().__init__()
        self.dialog_title = title
        self.data = data
        self.show_password = False

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(self.dialog_title, classes="title")
            yield Static(f"Username: {self.data.username}", markup=False)
            self.password_label = Static("Password: ••••••••", markup=False)
            yield self.password_label
            if self.data.notes:
                yield Static(f"Notes: {self.data.notes}", markup=False)
            with Horizontal():
                yield Button("Copy username", id="copy_username")
                yield Button("Copy password", id="copy_password")
                yield Button("Show / hide", id="toggle")
                yield Button("Close (Esc)", id="close", variant="primary")

    def _copy(self, text: str, label: str) -> None:
        if copy_to_clipboard(text):
            self.app.notify(f"{label} copied to clipboard")
        else:
            self.app.notify("Failed to copy to clipboard", severity="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "copy_username":
            self._copy(self.data.username, "Username")
        elif event.button.id == "copy_password":
            self._copy(self.data.password, "Password")
        elif event.button.id == "toggle":
            self.show_password = not self.show_password
            shown = self.data.password if self.show_password else "••••••••"
            self.password_label.update(f"Password: {shown}")
        else:
            self.dismiss(None)

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)


class ShareSettingsModal(ModalScreen[Optional[ShareSettings]]):
    """Edit the share flags; unchecking partner sharing clears credential sharing."""

    def __init__(self, service_name: str, current: ShareSettings, has_credentials: bool):
        super().__init__()
        self.service_name = service_name
        self.current = current
        self.has_credentials = has_credentials

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(f"Share {self.service_name}", classes="title")
            self.shared_box = Checkbox(
                "Share with partners", value=self.current.shared_with_partners, id="shared"
            )
            yield self.shared_box
            label = "Share login credentials" if self.has_credentials else "Share login credentials (save credentials first)"
            self.credentials_box = Checkbox(
                label,
                value=self.current.share_credentials,
                disabled=not (self.current.shared_with_partners and self.has_credentials),
                id="credentials",
            )
            yield self.credentials_box
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Save", id="ok", variant="primary")

    def on_checkbox_changed(self, event: Checkbox.Changed) -> None:  # pragma: no cover
        if event.checkbox.id != "shared":
            return
        if not event.value:
            self.credentials_box.value = False
        self.credentials_box.disabled = not (event.value and self.has_credentials)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
            return
        self.dismiss(
            ShareSettings(
                shared_with_partners=self.shared_box.value,
                share_credentials=self.credentials_box.value,
            )
        )

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)


class TextPromptModal(ModalScreen[Optional[str]]):
    """Single-line prompt used for adding subscriptions and partners."""

    def __init__(self, title: str, label: str, placeholder: str = ""):
        super().__init__()
        self.dialog_title = title
        self.label = label
        self.placeholder = placeholder

    def compose(self) -> ComposeResult:  # pragma: no cover - UI only
        with Vertical(classes="dialog"):
            yield Static(self.dialog_title, classes="title")
            yield Label(self.label)
            self.value_input = Input(placeholder=self.placeholder)
            yield self.value_input
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("OK (Enter)", id="ok", variant="primary")

    def on_mount(self) -> None:  # pragma: no cover
        self.set_focus(self.value_input)

    def _submit(self) -> None:
        value = self.value_input.value.strip()
        self.dismiss(value or None)

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        if event.button.id == "cancel":
            self.dismiss(None)
            return
        self._submit()

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(None)
        elif event.key == "enter":
            self._submit()


class DeleteConfirmModal(ModalScreen[Optional[bool]]):
    def __init__(self, prompt: str):
        super().__init__()
        self.prompt = prompt

    def compose(self) -> ComposeResult:  # pragma: no cover
        with Vertical(classes="dialog"):
            yield Static(self.prompt)
            with Horizontal():
                yield Button("Cancel (Esc)", id="cancel")
                yield Button("Delete (Enter)", id="ok", variant="error")

    def on_button_pressed(self, event: Button.Pressed) -> None:  # pragma: no cover
        self.dismiss(event.button.id == "ok")

    def on_key(self, event) -> None:  # pragma: no cover
        if event.key == "escape":
            self.dismiss(False)
        elif event.key == "enter":
            self.dismiss(True)


# === Application ===


class SubCircleApp(App):
    """Subscriptions on the left, details and credential actions on the right."""

    TITLE = "SubCircle"

    CSS = """
    #sidebar { width: 35%; min-width: 28; border: heavy $surface; }
    #main { border: heavy $surface; }
    .title { padding: 1 1; text-style: bold; }
    .hint { padding: 0 1; color: $warning; }
    #details { padding: 1 1; }
    #status { padding: 0 1 1 1; height: 3; color: $text-muted; }
    ModalScreen { align: center middle; background: rgba(0,0,0,0.45); }
    .dialog { width: 75%; height: auto; max-height: 90%; padding: 1; border: heavy $surface; background: $boost; }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("a", "add_subscription", "Add"),
        ("c", "edit_credentials", "Credentials"),
        ("v", "view_credentials", "View"),
        ("x", "delete_credentials", "Delete Credentials"),
        ("s", "share_settings", "Share"),
        ("p", "add_partner", "Add Partner"),
        ("y", "accept_requests", "Accept Partners"),
        ("n", "read_notifications", "Mark Read"),
    ]

    def __init__(self, ctx: AppContext | None = None):
        self.ctx = ctx or build_context()
        super().__init__()

        self.my_list: ListView | None = None
        self.shared_list: ListView | None = None
        self.details: Static | None = None
        self.status: Static | None = None
        # Whichever list item was highlighted last: ("own", Subscription) or ("shared", SharedSubscription)
        self.selection: tuple[str, object] | None = None
        # Set while a save/decrypt/delete is running; blocks duplicate submits
        self.crypto_busy: bool = False

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        with Horizontal():
            with Vertical(id="sidebar"):
                yield Static("My Subscriptions", classes="title")
                self.my_list = ListView(id="mine")
                yield self.my_list
                yield Static("Shared with Me", classes="title")
                self.shared_list = ListView(id="shared")
                yield self.shared_list
            with Vertical(id="main"):
                yield Static("Details", classes="title")
                self.details = Static("Select a subscription", id="details", markup=False)
                yield self.details
                self.status = Static("", id="status")
                yield self.status
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_subscriptions()
        self.run_worker(self.refresh_shared(), name="refresh_shared", group="refresh", exclusive=True)
        self._update_status()

    # ------------------------------------------------------------------
    # Data loading
    # ------------------------------------------------------------------

    def refresh_subscriptions(self) -> None:
        if self.my_list is None:
            return
        self.my_list.clear()
        for sub in self.ctx.subscriptions.list_by_user(self.ctx.user_id):
            flags = []
            if sub.settings.shared_with_partners:
                flags.append("shared")
            if self.ctx.credentials.exists(sub.subscription_id):
                flags.append("🔑")
            label = sub.service_name or sub.service_id
            if flags:
                label += f"  ({', '.join(flags)})"
            item = ListItem(Static(label, markup=False))
            item.data = ("own", sub)
            self.my_list.append(item)

    async def refresh_shared(self) -> None:
        if self.shared_list is None:
            return
        self.shared_list.clear()
        for partner_id in self.ctx.partners.list_partner_ids(self.ctx.user_id):
            result = await self.ctx.partner_access.list_shared_subscriptions(self.ctx.user_id, partner_id)
            if not result.success:
                continue
            for shared in result.data:
                sub = shared.subscription
                label = f"{sub.service_name or sub.service_id} ({partner_id})"
                if shared.credentials_available:
                    label += "  (🔑)"
                item = ListItem(Static(label, markup=False))
                item.data = ("shared", shared)
                self.shared_list.append(item)

    def action_refresh(self) -> None:
        self.refresh_subscriptions()
        self.run_worker(self.refresh_shared(), name="refresh_shared", group="refresh", exclusive=True)
        self._update_status()
        self._set_status("Refreshed")

    def on_list_view_highlighted(self, event: ListView.Highlighted) -> None:
        item = event.item
        if item is None or not hasattr(item, "data"):
            return
        self.selection = item.data
        self._render_details()

    def _render_details(self) -> None:
        if self.details is None or self.selection is None:
            return
        kind, value = self.selection
        sub: Subscription = value if kind == "own" else value.subscription
        service = self.ctx.services.get(sub.service_id)
        lines = [
            f"Service: {sub.service_name or sub.service_id}",
            f"Price: {_price(service.monthly_price if service else None)}",
            f"Active: {'yes' if sub.is_active else 'no'}",
        ]
        if kind == "own":
            lines.append(f"Shared with partners: {'yes' if sub.settings.shared_with_partners else 'no'}")
            lines.append(f"Credentials shared: {'yes' if sub.settings.share_credentials else 'no'}")
            record = self.ctx.credentials.get(sub.subscription_id)
            lines.append(f"Credentials: {'saved' if record else 'none'}")
            if record and record.encryption_key_hint:
                lines.append(f"Password hint: {record.encryption_key_hint}")
        else:
            lines.append(f"Owner: {sub.user_id}")
            lines.append(f"Credentials: {'available' if value.credentials_available else 'not shared'}")
        self.details.update("\n".join(lines))

    def _set_status(self, message: str) -> None:
        if self.status is not None:
            self.status.update(message)

    def _update_status(self) -> None:
        unread = self.ctx.notifications.unread_count(self.ctx.user_id)
        self.sub_title = f"{self.ctx.user_id} · {unread} unread notification{'s' if unread != 1 else ''}"

    def _report(self, result: OperationResult, action: str) -> None:
        feedback = describe(result, action)
        self.notify(feedback.message, title=feedback.title, severity=feedback.severity)
        self._set_status(feedback.message)

    def _selected_own(self) -> Optional[Subscription]:
        if self.selection is None or self.selection[0] != "own":
            self._set_status("Select one of your subscriptions first")
            return None
        return self.selection[1]

    def _begin_crypto(self) -> bool:
        if self.crypto_busy:
            self.notify("Please wait for the current operation to finish", severity="warning")
            return False
        self.crypto_busy = True
        return True

    # ------------------------------------------------------------------
    # Subscriptions and partners
    # ------------------------------------------------------------------

    def action_add_subscription(self) -> None:
        names = ", ".join(s.name for s in self.ctx.services.list_all()[:8])
        self.push_screen(
            TextPromptModal("Add Subscription", "Service name", placeholder=names),
            self._handle_add_subscription,
        )

    def _handle_add_subscription(self, name: Optional[str]) -> None:
        if not name:
            return
        try:
            service = self.ctx.services.get_by_name(name)
            if service is None:
                service = self.ctx.services.create(StreamingService(name=name, category="streaming"))
            self.ctx.subscriptions.create(Subscription(user_id=self.ctx.user_id, service_id=service.service_id))
        except SubCircleError as exc:
            self.notify(f"Could not add subscription: {exc}", severity="error")
            return
        self.refresh_subscriptions()
        self._set_status(f"Added {name}")

    def action_add_partner(self) -> None:
        self.push_screen(
            TextPromptModal("Add Partner", "Partner user id or email"),
            self._handle_add_partner,
        )

    def _handle_add_partner(self, value: Optional[str]) -> None:
        if not value:
            return
        row = self.ctx.users.get(value) or self.ctx.users.get_by_email(value)
        if row is None:
            self.notify("No user with that id or email", severity="warning")
            return
        try:
            self.ctx.partners.request(self.ctx.user_id, row["user_id"])
        except SubCircleError as exc:
            self.notify(str(exc), severity="warning")
            return
        self._set_status(f"Partner request sent to {row['user_id']}")

    def action_accept_requests(self) -> None:
        """Accept every pending request addressed to the current user."""
        accepted = 0
        for connection in self.ctx.partners.list_by_user(self.ctx.user_id, ConnectionStatus.PENDING):
            if connection.partner_id != self.ctx.user_id:
                continue
            try:
                self.ctx.partners.set_status(
                    connection.connection_id, ConnectionStatus.ACCEPTED, acting_user_id=self.ctx.user_id
                )
            except SubCircleError as exc:
                self.notify(str(exc), severity="error")
                continue
            accepted += 1
        self._set_status(f"Accepted {accepted} partner request(s)")
        if accepted:
            self.run_worker(self.refresh_shared(), name="refresh_shared", group="refresh", exclusive=True)

    def action_read_notifications(self) -> None:
        changed = self.ctx.notifications.mark_all_read(self.ctx.user_id)
        self._update_status()
        self._set_status(f"Marked {changed} notification(s) read")

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def action_edit_credentials(self) -> None:
        sub = self._selected_own()
        if sub is None:
            return
        record = self.ctx.credentials.get(sub.subscription_id)
        self.push_screen(
            CredentialInputModal(sub.service_name or "Subscription", record.encryption_key_hint if record else None),
            lambda result: self._handle_credentials_form(sub, result),
        )

    def _handle_credentials_form(self, sub: Subscription, result: Optional[CredentialFormResult]) -> None:
        if result is None or not self._begin_crypto():
            return
        self._set_status("Encrypting credentials...")
        self.run_worker(
            self._save_credentials(sub, result),
            name="save_credentials",
            group="crypto",
        )

    async def _save_credentials(self, sub: Subscription, form: CredentialFormResult) -> None:
        try:
            result = await self.ctx.manager.save(sub.subscription_id, form.credentials, form.master_password)
        finally:
            self.crypto_busy = False
        self._report(result, "Credentials Saved")
        self.refresh_subscriptions()
        self._render_details()

    def action_view_credentials(self) -> None:
        if self.selection is None:
            self._set_status("Select a subscription first")
            return
        kind, value = self.selection
        if kind == "shared":
            if not value.credentials_available:
                self.notify("No credentials shared for this subscription", severity="warning")
                return
            # the listing may be stale, so the partner gate decides
            self.run_worker(
                self._open_shared_credentials(value), name="open_shared_credentials", group="credentials"
            )
            return

        record = self.ctx.credentials.get(value.subscription_id)
        if record is None:
            self.notify("No credentials saved for this subscription", severity="warning")
            return
        self._ask_master_password(kind, value, record)

    async def _open_shared_credentials(self, shared) -> None:
        sub = shared.subscription
        result = await self.ctx.partner_access.get_credential_record(self.ctx.user_id, sub.subscription_id)
        if not result.success:
            shared.credentials_available = False
            self._report(result, "View credentials")
            await self.refresh_shared()
            return
        self._ask_master_password("shared", sub, result.data, owner_label=sub.user_id)

    def _ask_master_password(self, kind: str, sub: Subscription, record, owner_label: str | None = None) -> None:
        self.push_screen(
            MasterPasswordModal(
                f"{sub.service_name or 'Subscription'} Credentials",
                hint=record.encryption_key_hint,
                owner_label=owner_label,
            ),
            lambda password: self._handle_master_password(kind, sub, password),
        )

    def _handle_master_password(self, kind: str, sub: Subscription, password: Optional[str]) -> None:
        if not password or not self._begin_crypto():
            return
        self._set_status("Decrypting...")
        self.run_worker(self._decrypt_credentials(kind, sub, password), name="decrypt_credentials", group="crypto")

    async def _decrypt_credentials(self, kind: str, sub: Subscription, password: str) -> None:
        try:
            if kind == "own":
                result = await self.ctx.manager.decrypt(sub.subscription_id, password)
            else:
                result = await self.ctx.partner_access.decrypt(self.ctx.user_id, sub.subscription_id, password)
        finally:
            self.crypto_busy = False
        if not result.success:
            self._report(result, "Decrypt credentials")
            return
        self._set_status("Decrypted")
        self.push_screen(CredentialsViewModal(f"{sub.service_name or 'Subscription'} Credentials", result.data))

    def action_delete_credentials(self) -> None:
        sub = self._selected_own()
        if sub is None:
            return
        self.push_screen(
            DeleteConfirmModal(f"Delete saved credentials for {sub.service_name or 'this subscription'}?"),
            lambda confirmed: self._handle_delete_credentials(sub, confirmed),
        )

    def _handle_delete_credentials(self, sub: Subscription, confirmed: Optional[bool]) -> None:
        if not confirmed or not self._begin_crypto():
            return
        self.run_worker(self._delete_credentials(sub), name="delete_credentials", group="crypto")

    async def _delete_credentials(self, sub: Subscription) -> None:
        try:
            result = await self.ctx.manager.delete(sub.subscription_id)
        finally:
            self.crypto_busy = False
        self._report(result, "Credentials Deleted")
        self.refresh_subscriptions()
        self._render_details()

    # ------------------------------------------------------------------
    # Sharing
    # ------------------------------------------------------------------

    def action_share_settings(self) -> None:
        sub = self._selected_own()
        if sub is None:
            return
        current = self.ctx.subscriptions.get_share_settings(sub.subscription_id) or ShareSettings()
        self.push_screen(
            ShareSettingsModal(
                sub.service_name or "Subscription",
                current,
                self.ctx.credentials.exists(sub.subscription_id),
            ),
            lambda settings: self._handle_share_settings(sub, settings),
        )

    def _handle_share_settings(self, sub: Subscription, settings: Optional[ShareSettings]) -> None:
        if settings is None:
            return
        self.run_worker(self._update_share_settings(sub, settings), name="share_settings", group="sharing")

    async def _update_share_settings(self, sub: Subscription, settings: ShareSettings) -> None:
        result = await self.ctx.sharing.update_settings(sub.subscription_id, self.ctx.user_id, settings)
        self._report(result, "Sharing Updated")
        if result.success:
            sub.settings = result.data
        self.refresh_subscriptions()
        self._render_details()


def main() -> None:  # pragma: no cover
    from subcircle.core.config import Settings
    from subcircle.frontend.cli.logging_config import configure_logging

    settings = Settings.from_env()
    configure_logging(settings.log_level, log_file="subcircle.log")
    SubCircleApp(build_context(settings=settings)).run()


if __name__ == "__main__":  # pragma: no cover
    main()
