"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the hosted store because:
1. Group members can view the shared data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

One worksheet per collection. Personal and group transactions share the
Transactions worksheet and are told apart by their owner scope path
(users/{uid}/transactions or groups/{gid}/transactions).

TRADEOFFS:
- Not suitable for high-volume data (fine for households and small groups)
- Limited query capabilities (we filter in Python)
- Multi-row writes go through spreadsheets.batchUpdate, which the API
  applies all-or-nothing. That is our only transaction primitive.

The implementation follows the abstract interface, so we can swap
to a document database later without changing business logic.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import get_settings
from finance_tracker.models.audit import AuditEvent, AuditEventType, AuditSeverity
from finance_tracker.models.group import (
    Group,
    GroupInvitation,
    GroupMember,
    InvitationStatus,
)
from finance_tracker.models.transaction import (
    Category,
    Currency,
    OwnerScope,
    Transaction,
    TransactionFields,
    TransactionItem,
    TransactionType,
    new_id,
)
from finance_tracker.models.user import (
    NotificationSettings,
    UserProfile,
    UserSettings,
)
from finance_tracker.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    GroupStorageInterface,
    NotFoundError,
    ProfileStorageInterface,
    StorageError,
    TransactionStorageInterface,
)


logger = structlog.get_logger(__name__)


# Column mappings, one list per worksheet
TRANSACTION_COLUMNS = [
    "id",
    "scope",
    "date",
    "description",
    "amount",
    "currency",
    "type",
    "category",
    "has_item_details",
    "items_json",
    "created_by",
    "created_by_name",
    "group_id",
]

GROUP_COLUMNS = [
    "id",
    "name",
    "description",
    "created_by",
    "created_at",
    "member_ids",
    "members_json",
]

INVITATION_COLUMNS = [
    "id",
    "group_id",
    "group_name",
    "invited_by",
    "invited_by_name",
    "invited_email",
    "status",
    "created_at",
    "expires_at",
    "invite_token",
]

PROFILE_COLUMNS = [
    "user_id",
    "name",
    "email",
    "photo_url",
    "created_at",
    "updated_at",
]

USER_SETTINGS_COLUMNS = [
    "user_id",
    "currency",
    "theme",
    "timezone",
    "budget_alerts",
    "notifications_json",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "actor_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]


# =============================================================================
# BATCH REQUESTS
# =============================================================================

def update_row_request(sheet_id: int, row_number: int, values: list) -> dict:
    """batchUpdate request overwriting one row (1-based row number)."""
    return {
        "updateCells": {
            "range": {
                "sheetId": sheet_id,
                "startRowIndex": row_number - 1,
                "endRowIndex": row_number,
                "startColumnIndex": 0,
                "endColumnIndex": len(values),
            },
            "rows": [{
                "values": [
                    {"userEnteredValue": {"stringValue": str(value)}}
                    for value in values
                ],
            }],
            "fields": "userEnteredValue",
        }
    }


def delete_row_request(sheet_id: int, row_number: int) -> dict:
    """batchUpdate request deleting one row (1-based row number)."""
    return {
        "deleteDimension": {
            "range": {
                "sheetId": sheet_id,
                "dimension": "ROWS",
                "startIndex": row_number - 1,
                "endIndex": row_number,
            }
        }
    }


def find_rows(
    sheet: gspread.Worksheet,
    predicate: Callable[[list], bool],
) -> list[tuple[int, list]]:
    """(row_number, row) for each data row matching `predicate`."""
    all_rows = sheet.get_all_values()
    return [
        (idx, row)
        for idx, row in enumerate(all_rows[1:], start=2)  # Row 1 is the header
        if row and row[0] and predicate(row)
    ]


def _safe_getter(row: list) -> Callable[..., str]:
    """Handle missing trailing columns gracefully."""
    def safe_get(index: int, default: str = "") -> str:
        try:
            return row[index] if row[index] else default
        except IndexError:
            return default
    return safe_get


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for connecting.
    Operations themselves are not retried.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get or create a worksheet, writing the header row on creation."""
        if title not in self._worksheets:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(title)
            except gspread.WorksheetNotFound:
                sheet = spreadsheet.add_worksheet(
                    title=title,
                    rows=rows,
                    cols=len(columns),
                )
                sheet.append_row(columns)
            self._worksheets[title] = sheet
        return self._worksheets[title]

    def batch_update(self, requests: list[dict]) -> None:
        """Apply requests in order, all-or-nothing."""
        if requests:
            self.get_spreadsheet().batch_update({"requests": requests})

    def get_transactions_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def get_invitations_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.invitations_sheet_name, INVITATION_COLUMNS
        )

    def get_profiles_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.profiles_sheet_name, PROFILE_COLUMNS)

    def get_user_settings_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.user_settings_sheet_name, USER_SETTINGS_COLUMNS
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class GoogleSheetsTransactionStorage(TransactionStorageInterface):
    """
    Google Sheets implementation of transaction storage.

    One transaction per row; items are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(
        self,
        scope: OwnerScope,
        transaction_id: str,
        fields: TransactionFields,
    ) -> list:
        """Convert a field set to a spreadsheet row."""
        return [
            transaction_id,
            scope.collection_path,
            fields.date.isoformat(),
            fields.description,
            str(fields.amount),
            fields.currency.value,
            fields.type.value,
            fields.category.value,
            str(fields.has_item_details),
            json.dumps(
                [item.model_dump(mode="json") for item in fields.items]
            ) if fields.items else "",
            fields.created_by,
            fields.created_by_name or "",
            fields.group_id or "",
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        """Convert a spreadsheet row to a Transaction."""
        safe_get = _safe_getter(row)

        items = []
        items_json = safe_get(9)
        if items_json:
            items = [TransactionItem(**item) for item in json.loads(items_json)]

        return Transaction(
            id=safe_get(0),
            date=datetime.fromisoformat(safe_get(2)),
            description=safe_get(3),
            amount=Decimal(safe_get(4)),
            # Rows written before currencies existed are read as USD
            currency=Currency(safe_get(5, "USD")),
            type=TransactionType(safe_get(6)),
            category=Category(safe_get(7)),
            has_item_details=safe_get(8).lower() == "true",
            items=items,
            created_by=safe_get(10),
            created_by_name=safe_get(11) or None,
            group_id=safe_get(12) or None,
        )

    def _scope_rows(
        self,
        sheet: gspread.Worksheet,
        scope: OwnerScope,
        transaction_id: Optional[str] = None,
    ) -> list[tuple[int, list]]:
        path = scope.collection_path
        return find_rows(
            sheet,
            lambda row: len(row) > 1 and row[1] == path
            and (transaction_id is None or row[0] == transaction_id),
        )

    async def list_transactions(self, scope: OwnerScope) -> list[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            transactions = []
            for idx, row in self._scope_rows(sheet, scope):
                try:
                    transactions.append(self._row_to_transaction(row))
                except Exception as e:
                    # Skip malformed rows
                    logger.warning("skipping_malformed_row", sheet="transactions", row=idx, error=str(e))
            return transactions
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")

    async def get_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
    ) -> Optional[Transaction]:
        try:
            sheet = self._client.get_transactions_sheet()
            matches = self._scope_rows(sheet, scope, transaction_id)
            return self._row_to_transaction(matches[0][1]) if matches else None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def create_transaction(
        self,
        scope: OwnerScope,
        fields: TransactionFields,
    ) -> str:
        try:
            sheet = self._client.get_transactions_sheet()
            transaction_id = new_id()
            row = self._transaction_to_row(scope, transaction_id, fields)
            sheet.append_row(row, value_input_option="RAW")
            return transaction_id
        except Exception as e:
            raise StorageError(f"Failed to create transaction: {e}")

    async def replace_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
        fields: TransactionFields,
    ) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            matches = self._scope_rows(sheet, scope, transaction_id)
            if not matches:
                raise NotFoundError(
                    f"Transaction not found: {scope.collection_path}/{transaction_id}"
                )
            row = self._transaction_to_row(scope, transaction_id, fields)
            self._client.batch_update([
                update_row_request(sheet.id, matches[0][0], row)
            ])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to replace transaction: {e}")

    async def delete_transaction(
        self,
        scope: OwnerScope,
        transaction_id: str,
    ) -> None:
        try:
            sheet = self._client.get_transactions_sheet()
            matches = self._scope_rows(sheet, scope, transaction_id)
            if not matches:
                raise NotFoundError(
                    f"Transaction not found: {scope.collection_path}/{transaction_id}"
                )
            sheet.delete_rows(matches[0][0])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")


# =============================================================================
# GROUPS AND INVITATIONS
# =============================================================================

class GoogleSheetsGroupStorage(GroupStorageInterface):
    """
    Google Sheets implementation of group and invitation storage.

    Members are JSON-serialized into the group row. The member_ids column
    is written for people browsing the sheet and for membership lookups;
    it is never read back as a source of truth.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _group_to_row(self, group: Group) -> list:
        return [
            group.id,
            group.name,
            group.description,
            group.created_by,
            group.created_at.isoformat(),
            ",".join(group.member_ids),
            json.dumps([m.model_dump(mode="json") for m in group.members]),
        ]

    def _row_to_group(self, row: list) -> Group:
        safe_get = _safe_getter(row)
        members_json = safe_get(6)
        members = [
            GroupMember(**member) for member in json.loads(members_json)
        ] if members_json else []
        return Group(
            id=safe_get(0),
            name=safe_get(1),
            description=safe_get(2),
            created_by=safe_get(3),
            created_at=datetime.fromisoformat(safe_get(4)),
            members=members,
        )

    def _invitation_to_row(self, invitation: GroupInvitation) -> list:
        return [
            invitation.id,
            invitation.group_id,
            invitation.group_name,
            invitation.invited_by,
            invitation.invited_by_name,
            invitation.invited_email,
            invitation.status.value,
            invitation.created_at.isoformat(),
            invitation.expires_at.isoformat(),
            invitation.invite_token,
        ]

    def _row_to_invitation(self, row: list) -> GroupInvitation:
        safe_get = _safe_getter(row)
        return GroupInvitation(
            id=safe_get(0),
            group_id=safe_get(1),
            group_name=safe_get(2),
            invited_by=safe_get(3),
            invited_by_name=safe_get(4),
            invited_email=safe_get(5),
            status=InvitationStatus(safe_get(6)),
            created_at=datetime.fromisoformat(safe_get(7)),
            expires_at=datetime.fromisoformat(safe_get(8)),
            invite_token=safe_get(9),
        )

    def _find_group(self, sheet: gspread.Worksheet, group_id: str) -> tuple[int, Group]:
        matches = find_rows(sheet, lambda row: row[0] == group_id)
        if not matches:
            raise NotFoundError(f"Group not found: {group_id}")
        idx, row = matches[0]
        return idx, self._row_to_group(row)

    def _find_invitation(
        self,
        sheet: gspread.Worksheet,
        invitation_id: str,
    ) -> tuple[int, GroupInvitation]:
        matches = find_rows(sheet, lambda row: row[0] == invitation_id)
        if not matches:
            raise NotFoundError(f"Invitation not found: {invitation_id}")
        idx, row = matches[0]
        return idx, self._row_to_invitation(row)

    def _list_invitations(
        self,
        predicate: Callable[[list], bool],
    ) -> list[GroupInvitation]:
        sheet = self._client.get_invitations_sheet()
        return [self._row_to_invitation(row) for _, row in find_rows(sheet, predicate)]

    async def create_group(self, group: Group) -> str:
        try:
            sheet = self._client.get_groups_sheet()
            sheet.append_row(self._group_to_row(group), value_input_option="RAW")
            return group.id
        except Exception as e:
            raise StorageError(f"Failed to create group: {e}")

    async def get_group(self, group_id: str) -> Optional[Group]:
        try:
            sheet = self._client.get_groups_sheet()
            return self._find_group(sheet, group_id)[1]
        except NotFoundError:
            return None
        except Exception as e:
            raise StorageError(f"Failed to get group: {e}")

    async def list_groups_for_member(self, user_id: str) -> list[Group]:
        try:
            sheet = self._client.get_groups_sheet()
            matches = find_rows(
                sheet,
                lambda row: len(row) > 5 and user_id in row[5].split(","),
            )
            groups = [self._row_to_group(row) for _, row in matches]
            # The member_ids column is only a hint
            return [g for g in groups if g.has_member(user_id)]
        except Exception as e:
            raise StorageError(f"Failed to list groups: {e}")

    async def update_members(
        self,
        group_id: str,
        members: list[GroupMember],
    ) -> None:
        try:
            sheet = self._client.get_groups_sheet()
            idx, group = self._find_group(sheet, group_id)
            group.members = members
            self._client.batch_update([
                update_row_request(sheet.id, idx, self._group_to_row(group))
            ])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update members: {e}")

    async def create_invitation(self, invitation: GroupInvitation) -> str:
        try:
            sheet = self._client.get_invitations_sheet()
            sheet.append_row(
                self._invitation_to_row(invitation),
                value_input_option="RAW",
            )
            return invitation.id
        except Exception as e:
            raise StorageError(f"Failed to create invitation: {e}")

    async def get_invitation(self, invitation_id: str) -> Optional[GroupInvitation]:
        try:
            sheet = self._client.get_invitations_sheet()
            return self._find_invitation(sheet, invitation_id)[1]
        except NotFoundError:
            return None
        except Exception as e:
            raise StorageError(f"Failed to get invitation: {e}")

    async def get_invitation_by_token(self, token: str) -> Optional[GroupInvitation]:
        try:
            found = self._list_invitations(
                lambda row: len(row) > 9 and row[9] == token
            )
            return found[0] if found else None
        except Exception as e:
            raise StorageError(f"Failed to get invitation: {e}")

    async def list_invitations_for_email(self, email: str) -> list[GroupInvitation]:
        try:
            return self._list_invitations(
                lambda row: len(row) > 5 and row[5] == email
            )
        except Exception as e:
            raise StorageError(f"Failed to list invitations: {e}")

    async def list_invitations_for_group(self, group_id: str) -> list[GroupInvitation]:
        try:
            return self._list_invitations(
                lambda row: len(row) > 1 and row[1] == group_id
            )
        except Exception as e:
            raise StorageError(f"Failed to list invitations: {e}")

    async def set_invitation_status(
        self,
        invitation_id: str,
        status: InvitationStatus,
    ) -> None:
        try:
            sheet = self._client.get_invitations_sheet()
            idx, invitation = self._find_invitation(sheet, invitation_id)
            invitation.status = status
            self._client.batch_update([
                update_row_request(sheet.id, idx, self._invitation_to_row(invitation))
            ])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update invitation: {e}")

    async def add_member_and_accept_invitation(
        self,
        group_id: str,
        member: GroupMember,
        invitation_id: str,
    ) -> None:
        try:
            groups_sheet = self._client.get_groups_sheet()
            invitations_sheet = self._client.get_invitations_sheet()
            group_idx, group = self._find_group(groups_sheet, group_id)
            invitation_idx, invitation = self._find_invitation(
                invitations_sheet, invitation_id
            )

            if not group.has_member(member.user_id):
                group.members.append(member)
            invitation.status = InvitationStatus.ACCEPTED

            # One batchUpdate call: both rows change or neither does
            self._client.batch_update([
                update_row_request(groups_sheet.id, group_idx, self._group_to_row(group)),
                update_row_request(
                    invitations_sheet.id,
                    invitation_idx,
                    self._invitation_to_row(invitation),
                ),
            ])
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to accept invitation: {e}")

    async def delete_group_cascade(self, group_id: str) -> int:
        try:
            groups_sheet = self._client.get_groups_sheet()
            invitations_sheet = self._client.get_invitations_sheet()
            group_idx, _ = self._find_group(groups_sheet, group_id)
            pending = find_rows(
                invitations_sheet,
                lambda row: len(row) > 6
                and row[1] == group_id
                and row[6] == InvitationStatus.PENDING.value,
            )

            # Requests apply in order: delete bottom rows first so the
            # remaining row numbers stay correct
            requests = [
                delete_row_request(invitations_sheet.id, idx)
                for idx, _ in sorted(pending, key=lambda m: m[0], reverse=True)
            ]
            requests.append(delete_row_request(groups_sheet.id, group_idx))
            self._client.batch_update(requests)
            return len(pending)
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete group: {e}")


# =============================================================================
# PROFILES AND SETTINGS
# =============================================================================

class GoogleSheetsProfileStorage(ProfileStorageInterface):
    """Profiles and settings, one row per user, overwritten on save."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _upsert(self, sheet: gspread.Worksheet, key: str, row: list) -> None:
        matches = find_rows(sheet, lambda r: r[0] == key)
        if matches:
            self._client.batch_update([
                update_row_request(sheet.id, matches[0][0], row)
            ])
        else:
            sheet.append_row(row, value_input_option="RAW")

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        try:
            sheet = self._client.get_profiles_sheet()
            matches = find_rows(sheet, lambda row: row[0] == user_id)
            if not matches:
                return None
            safe_get = _safe_getter(matches[0][1])
            return UserProfile(
                user_id=safe_get(0),
                name=safe_get(1),
                email=safe_get(2),
                photo_url=safe_get(3),
                created_at=datetime.fromisoformat(safe_get(4)),
                updated_at=datetime.fromisoformat(safe_get(5)),
            )
        except Exception as e:
            raise StorageError(f"Failed to get profile: {e}")

    async def save_profile(self, profile: UserProfile) -> None:
        try:
            sheet = self._client.get_profiles_sheet()
            self._upsert(sheet, profile.user_id, [
                profile.user_id,
                profile.name,
                profile.email,
                profile.photo_url,
                profile.created_at.isoformat(),
                profile.updated_at.isoformat(),
            ])
        except Exception as e:
            raise StorageError(f"Failed to save profile: {e}")

    async def get_settings(self, user_id: str) -> Optional[UserSettings]:
        try:
            sheet = self._client.get_user_settings_sheet()
            matches = find_rows(sheet, lambda row: row[0] == user_id)
            if not matches:
                return None
            safe_get = _safe_getter(matches[0][1])
            notifications_json = safe_get(5)
            return UserSettings(
                user_id=safe_get(0),
                currency=Currency(safe_get(1, "USD")),
                theme=safe_get(2, "system"),
                timezone=safe_get(3, "UTC"),
                budget_alerts=safe_get(4, "True").lower() == "true",
                notifications=NotificationSettings(
                    **json.loads(notifications_json)
                ) if notifications_json else NotificationSettings(),
            )
        except Exception as e:
            raise StorageError(f"Failed to get settings: {e}")

    async def save_settings(self, settings: UserSettings) -> None:
        try:
            sheet = self._client.get_user_settings_sheet()
            self._upsert(sheet, settings.user_id, [
                settings.user_id,
                settings.currency.value,
                settings.theme,
                settings.timezone,
                str(settings.budget_alerts),
                json.dumps(settings.notifications.model_dump()),
            ])
        except Exception as e:
            raise StorageError(f"Failed to save settings: {e}")


# =============================================================================
# AUDIT LOG
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        safe_get = _safe_getter(row)

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            entity_type=safe_get(4) or None,
            entity_id=safe_get(5) or None,
            actor_id=safe_get(6) or None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _events_where(self, predicate: Callable[[list], bool]) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for idx, row in find_rows(sheet, predicate):
            try:
                events.append(self._row_to_event(row))
            except Exception as e:
                logger.warning("skipping_malformed_row", sheet="audit", row=idx, error=str(e))
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _append_row(self, row: list) -> None:
        # Appending an event id twice is harmless, so this may retry
        self._client.get_audit_sheet().append_row(row, value_input_option="RAW")

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._append_row(event.to_sheets_row())
            return True
        except Exception as e:
            # Don't raise - audit logging should not break the main flow
            logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            events = self._events_where(
                lambda row: len(row) > 7 and row[7] == str(correlation_id)
            )
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """Get events by entity."""
        try:
            events = self._events_where(
                lambda row: len(row) > 5
                and row[4] == entity_type
                and row[5] == entity_id
            )
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            events = self._events_where(lambda row: True)
            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
