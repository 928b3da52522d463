"""Interactive login that prints a SESSION_ID string."""

import asyncio
import logging
import os
from getpass import getpass

import qrcode
from telethon import TelegramClient, errors

from client import build_client

LOGGER = logging.getLogger(__name__)

QR_TIMEOUT = 120


async def _sign_in_with_qr(client: TelegramClient) -> None:
    login = await client.qr_login()
    code = qrcode.QRCode(border=1)
    code.add_data(login.url)
    code.make(fit=True)
    code.print_ascii(invert=True)
    print("Scan with Telegram: Settings > Devices > Link Desktop Device")
    await login.wait(timeout=QR_TIMEOUT)


async def _sign_in_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


async def sign_in(client: TelegramClient, use_phone: bool = False) -> None:
    """Authorize the client, asking for the 2FA password when Telegram needs it."""

    if await client.is_user_authorized():
        return
    try:
        if use_phone:
            await _sign_in_with_phone(client)
        else:
            await _sign_in_with_qr(client)
    except errors.SessionPasswordNeededError:
        password = os.getenv("2FA") or getpass("2FA password: ")
        await client.sign_in(password=password)


async def generate_session(use_phone: bool = False) -> str:
    """Log in with a fresh client and return its session string."""

    client = build_client()
    await client.connect()
    try:
        await sign_in(client, use_phone)
        me = await client.get_me()
        LOGGER.info("Logged in as: %s", me.first_name)
        return client.session.save()
    finally:
        await client.disconnect()


def main(use_phone: bool = False) -> None:
    session = asyncio.run(generate_session(use_phone))
    print("")
    print("Put this in your .env as SESSION_ID (keep it secret):")
    print(session)


if __name__ == "__main__":
    main(use_phone=os.getenv("LOGIN_METHOD", "").lower() == "phone")
