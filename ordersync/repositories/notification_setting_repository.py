from uuid import UUID

from sqlalchemy.orm import Session

from ordersync.models.notification_setting import NotificationSetting


class NotificationSettingRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_user_id(self, user_id: UUID) -> NotificationSetting | None:
        return (
            self.db.query(NotificationSetting)
            .filter(NotificationSetting.user_id == user_id)
            .first()
        )

    def get_destination(self, user_id: UUID) -> str | None:
        """Return the chat a user's order notifications go to, if enabled."""
        setting = self.get_by_user_id(user_id)
        if setting is None or not setting.enabled or not setting.telegram_chat_id:
            return None
        return str(setting.telegram_chat_id)

    def upsert(
        self, user_id: UUID, telegram_chat_id: str | None, enabled: bool = True
    ) -> NotificationSetting:
        setting = self.get_by_user_id(user_id)
        if setting is None:
            setting = NotificationSetting(user_id=user_id)
            self.db.add(setting)
        setting.telegram_chat_id = telegram_chat_id  # type: ignore[assignment]
        setting.enabled = enabled  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(setting)
        return setting
