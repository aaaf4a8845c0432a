import json
import logging
from typing import Any, Dict, List, Union

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

import models
from auth import get_current_admin_user
from database import get_db

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Site Settings"])

FOOTER_LINKS_KEY = "footer_links"


def load_setting(db: Session, key: str):
    """Decode a JSON setting; missing or malformed values come back as an empty object."""
    setting = db.query(models.SiteSetting).filter(models.SiteSetting.setting_key == key).first()
    if setting is None or not setting.setting_value:
        return {}
    try:
        value = json.loads(setting.setting_value)
    except ValueError:
        logger.warning("Site setting %s holds invalid JSON, ignoring it", key)
        return {}
    if not isinstance(value, (dict, list)):
        return {}
    return value


@router.get("/site-settings/footer-links")
def get_footer_links(db: Session = Depends(get_db)):
    return load_setting(db, FOOTER_LINKS_KEY)


@router.put("/admin/site-settings/footer-links", tags=["Admin"])
def update_footer_links(footer_links: Union[Dict[str, Any], List[Any]] = Body(...), db: Session = Depends(get_db),
                        admin_user: models.User = Depends(get_current_admin_user)):
    setting = db.query(models.SiteSetting).filter(models.SiteSetting.setting_key == FOOTER_LINKS_KEY).first()
    if setting is None:
        setting = models.SiteSetting(setting_key=FOOTER_LINKS_KEY)
        db.add(setting)
    setting.setting_value = json.dumps(footer_links)
    db.commit()
    logger.info("Admin %s updated footer links", admin_user.id)
    return footer_links
