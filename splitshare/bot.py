"""
Telegram SplitShare Bot (with MongoDB persistence)
==================================================
A group chat bot that lets members split a bill item-by-item, with
tax, service charge and discount shared in proportion to what each
person ordered.

Features:
- Upload a receipt photo (Gemini) or add items manually
- Everyone /joins and picks quantities with inline +/- buttons
- Sessions lock after a time limit, or when the organizer says so
- Summary with each person's share, reconciled to the bill total
- Payment link once everyone has submitted
- MongoDB persistence -- sessions survive restarts

Commands:
  /newbill     - Start a bill session: /newbill [minutes]
  /currency    - Set the currency: /currency INR
  /merchant    - Set the merchant name: /merchant Pizza Palace
  /additem     - Add item: /additem <name> [qty] <price>
  /edititem    - Change an item: /edititem <number> <qty> <price>
  /removeitem  - Remove an item: /removeitem <number>
  /setcharges  - Set charges: /setcharges <tax> <service> [discount]
  /join        - Join the current bill: /join [email]
  /items       - Show items with pick buttons
  /submit      - Submit your picks
  /addperson   - Add someone by name: /addperson <name> [email] (organizer)
  /assign      - Pick for someone: /assign <number> <name> [+|-] (organizer)
  /lock        - Lock the bill now (organizer)
  /summary     - Show who owes what: /summary [session id]
  /paid        - Toggle paid: /paid, or /paid <name> (organizer)
  /cancel      - Cancel the current bill (organizer)
  /history     - Show past bills in this chat
  /help        - Show help message
"""

import functools
import logging
import re
from datetime import date

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.error import BadRequest
from telegram.ext import (
    Application, CallbackQueryHandler, CommandHandler, ContextTypes,
    MessageHandler, filters,
)

from splitshare import editing, lifecycle
from splitshare.allocator import summarize_session
from splitshare.config import (
    BOT_TOKEN, DEFAULT_CURRENCY, DEFAULT_SESSION_MINUTES, PORT, WEBHOOK_URL,
)
from splitshare.errors import SplitShareError, ValidationError
from splitshare.formatting import (
    format_bill, format_history, format_money, format_selection,
    format_session_status, format_summary, md, payment_link,
)
from splitshare.models import Bill
from splitshare.receipt import analyze_receipt
from splitshare.store import connect_store

logger = logging.getLogger(__name__)


# --- Helpers ---

def get_display_name(user):
    if user.username:
        return f"@{user.username}"
    name = user.first_name or ""
    if user.last_name:
        name += f" {user.last_name}"
    return name.strip() or f"User#{user.id}"


def get_store(context):
    return context.bot_data["store"]


def command_args(update, command):
    return re.sub(rf'^/{command}(@\w+)?\s*', '', update.effective_message.text.strip())


def parse_amount(text, label):
    try:
        return float(text.replace(",", ""))
    except ValueError:
        raise ValidationError(f"Invalid {label}: {text}")


def parse_quantity(text):
    if not text.isdigit():
        raise ValidationError(f"Invalid quantity: {text}")
    return int(text)


def item_by_number(bill, text):
    if not text.lstrip("#").isdigit():
        raise ValidationError("Give the item number, e.g. `2`")
    n = int(text.lstrip("#"))
    if not 1 <= n <= len(bill.items):
        raise ValidationError(f"Item #{n} not found.")
    return bill.items[n - 1]


def load_active_session(update, context):
    """The chat's open session, locked on the spot if its time is up."""
    store = get_store(context)
    session = store.active_for_chat(update.effective_chat.id)
    if session and lifecycle.expire_if_due(session):
        lifecycle.cancel_lock_timer(context.job_queue, session.id)
        store.put(session)
    return session


def require_organizer(session, user):
    if not lifecycle.is_organizer(session, user.id):
        raise ValidationError("Only the bill organizer can do that.")


def require_participant(session, user):
    participant = session.participant_for_user(user.id)
    if participant is None:
        raise ValidationError("You need to /join the bill first!")
    return participant


def reports_errors(handler):
    """Show SplitShareErrors to the user instead of letting them escape the handler."""
    @functools.wraps(handler)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE):
        try:
            return await handler(update, context)
        except SplitShareError as e:
            logger.info(f"{handler.__name__} rejected: {e}")
            if update.callback_query:
                await update.callback_query.answer(str(e), show_alert=True)
            else:
                await reply_error(update.effective_message, f"⚠️ {e}")
    return wrapper


async def reply_error(message, text):
    # Error texts can echo user input that isn't valid Markdown
    try:
        await message.reply_text(text, parse_mode="Markdown")
    except BadRequest as e:
        logger.debug(f"Markdown rejected, sending plain text: {e}")
        await message.reply_text(text)


# --- Keyboards ---

def input_method_keyboard():
    return InlineKeyboardMarkup([
        [InlineKeyboardButton("📸 Upload receipt photo", callback_data="input:photo")],
        [InlineKeyboardButton("✏️ Add items manually", callback_data="input:manual")],
    ])


def items_keyboard(session):
    buttons = []
    for item in session.bill.items:
        claimed = sum(editing.selected_quantity(p, item.id) for p in session.participants)
        label = f"{item.name} ({claimed}/{item.quantity})"
        if len(label) > 40:
            label = label[:37] + "..."
        buttons.append([
            InlineKeyboardButton("➖", callback_data=f"sel:dec:{item.id}"),
            InlineKeyboardButton(label, callback_data=f"sel:show:{item.id}"),
            InlineKeyboardButton("➕", callback_data=f"sel:inc:{item.id}"),
        ])
    buttons.append([InlineKeyboardButton("✅ Submit my picks", callback_data="submit")])
    buttons.append([InlineKeyboardButton("📊 Summary", callback_data="summary")])
    return InlineKeyboardMarkup(buttons)


def items_text(session):
    return (
        format_bill(session.bill)
        + "\n\n" + format_session_status(session)
        + "\n\n👇 Tap ➕/➖ to pick your share:"
    )


# --- Lock timer ---

async def lock_timer_callback(context: ContextTypes.DEFAULT_TYPE):
    store = get_store(context)
    session = store.get(context.job.data)
    if session is None:
        return
    if not lifecycle.lock(session, reason="expired"):
        return

    store.put(session)
    if session.chat_id is not None:
        await context.bot.send_message(
            session.chat_id,
            "⏰ Time's up! The bill is now locked.\n\n" + format_summary(summarize_session(session)),
            parse_mode="Markdown",
        )


async def post_init(application: Application):
    """Re-arm lock timers for sessions that were open when the bot stopped."""
    store = application.bot_data["store"]
    armed = 0
    for session in store.open_sessions():
        if lifecycle.expire_if_due(session):
            store.put(session)
            continue
        lifecycle.arm_lock_timer(application.job_queue, session, lock_timer_callback)
        armed += 1
    logger.info(f"Re-armed {armed} session lock timers")


# --- Command Handlers ---

async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE):
    text = (
        "🧾 *SplitShare Bot* — Help\n\n"
        "*Start a bill:*\n"
        "/newbill `[minutes]` — Start a new bill in this chat\n"
        "/currency `CODE` — Set the currency (default "
        f"{DEFAULT_CURRENCY})\n"
        "/merchant `name` — Set where the bill is from\n\n"
        "*Add items:*\n"
        "Upload a receipt photo, or:\n"
        "/additem `name [qty] price` — Add item manually\n"
        "  _Example:_ `/additem Garlic Bread 2 150`\n"
        "/edititem `number qty price` — Fix an item\n"
        "/removeitem `number` — Remove an item\n"
        "/setcharges `tax service [discount]`\n"
        "  _Example:_ `/setcharges 55 27.5 0`\n\n"
        "*Pick items:*\n"
        "/join `[email]` — Join the current bill\n"
        "/items — Show items with ➕/➖ buttons\n"
        "/submit — Submit your picks\n\n"
        "*Picking for someone else (organizer):*\n"
        "/addperson `name [email]` — Add someone who isn't in the chat\n"
        "/assign `number name [+|-]` — Pick an item on their behalf\n\n"
        "*Finish:*\n"
        "/lock — Lock the bill now\n"
        "/summary `[id]` — See who owes what\n"
        "/paid — Mark yourself as paid\n"
        "/cancel — Cancel current bill\n"
        "/history — View past bills\n\n"
        "Tax, service charge and discount are shared in proportion to what you ordered."
    )
    await update.message.reply_text(text, parse_mode="Markdown")


@reports_errors
async def cmd_newbill(update: Update, context: ContextTypes.DEFAULT_TYPE):
    chat_id = update.effective_chat.id
    user = update.effective_user

    active = load_active_session(update, context)
    if active and not active.locked:
        await update.message.reply_text(
            "⚠️ There's already an active bill.\n"
            "Use /lock to finish it or /cancel to start fresh."
        )
        return

    args = command_args(update, "newbill")
    minutes = parse_quantity(args) if args else DEFAULT_SESSION_MINUTES

    bill = Bill(currency=DEFAULT_CURRENCY, date=date.today().isoformat())
    session = lifecycle.new_session(
        bill, user.id, minutes=minutes, chat_id=chat_id, organizer_name=get_display_name(user),
    )
    lifecycle.add_participant(session, get_display_name(user), user_id=user.id)

    get_store(context).put(session)
    lifecycle.arm_lock_timer(context.job_queue, session, lock_timer_callback)

    await update.message.reply_text(
        f"🧾 *New Bill* `{session.id}` started by {md(get_display_name(user))}!\n"
        f"⏳ Locks in {minutes} min · currency {bill.currency} (change with /currency)\n\n"
        "Now add items to the bill:",
        parse_mode="Markdown",
        reply_markup=input_method_keyboard(),
    )


@reports_errors
async def cmd_currency(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill. Start one with /newbill")
        return
    require_organizer(session, update.effective_user)
    lifecycle.ensure_open(session)

    code = command_args(update, "currency").upper()
    if not re.fullmatch(r"[A-Z]{3}", code):
        raise ValidationError("Usage: `/currency INR`")

    session.bill.currency = code
    get_store(context).put(session)
    await update.message.reply_text(f"💱 Currency set to *{code}*", parse_mode="Markdown")


@reports_errors
async def cmd_merchant(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill. Start one with /newbill")
        return
    require_organizer(session, update.effective_user)
    lifecycle.ensure_open(session)

    name = command_args(update, "merchant")
    if not name:
        raise ValidationError("Usage: `/merchant Pizza Palace`")

    session.bill.merchant = name
    get_store(context).put(session)
    await update.message.reply_text(f"🏪 Merchant set to *{md(name)}*", parse_mode="Markdown")


@reports_errors
async def cmd_additem(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill. Start one with /newbill")
        return
    require_organizer(session, update.effective_user)

    text = command_args(update, "additem")
    parts = text.rsplit(None, 2)
    if len(parts) == 3 and parts[1].isdigit():
        name, quantity, price = parts[0], parse_quantity(parts[1]), parse_amount(parts[2], "price")
    else:
        parts = text.rsplit(None, 1)
        if len(parts) < 2:
            raise ValidationError("Provide a name and a price.\nExample: `/additem Garlic Bread 2 150`")
        name, quantity, price = parts[0], 1, parse_amount(parts[1], "price")

    item = editing.edit_session_bill(session, editing.add_item, name, quantity, price)
    get_store(context).put(session)

    currency = session.bill.currency
    await update.message.reply_text(
        f"✅ Added `#{len(session.bill.items)}` *{md(item.name)}* — "
        f"{item.quantity} × {format_money(item.unit_price, currency)}\n"
        f"💰 Total: {format_money(session.bill.charges.total, currency)}",
        parse_mode="Markdown",
    )


@reports_errors
async def cmd_edititem(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    require_organizer(session, update.effective_user)

    parts = command_args(update, "edititem").split()
    if len(parts) != 3:
        raise ValidationError("Usage: `/edititem 2 1 150` (number, qty, price)")

    item = item_by_number(session.bill, parts[0])
    editing.edit_session_bill(
        session, editing.update_item, item.id,
        quantity=parse_quantity(parts[1]), unit_price=parse_amount(parts[2], "price"),
    )
    get_store(context).put(session)
    await update.message.reply_text(format_bill(session.bill), parse_mode="Markdown")


@reports_errors
async def cmd_removeitem(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    require_organizer(session, update.effective_user)

    item = item_by_number(session.bill, command_args(update, "removeitem"))
    editing.edit_session_bill(session, editing.remove_item, item.id)
    get_store(context).put(session)
    await update.message.reply_text(f"🗑️ Removed *{md(item.name)}*", parse_mode="Markdown")


@reports_errors
async def cmd_setcharges(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    require_organizer(session, update.effective_user)

    parts = command_args(update, "setcharges").split()
    if len(parts) not in (2, 3):
        charges = session.bill.charges
        currency = session.bill.currency
        await update.message.reply_text(
            f"Current charges: tax {format_money(charges.tax, currency)} | "
            f"service {format_money(charges.service_charge, currency)} | "
            f"discount {format_money(charges.discount, currency)}\n\n"
            "Usage: `/setcharges 55 27.5 [discount]`",
            parse_mode="Markdown",
        )
        return

    editing.edit_session_bill(
        session, editing.set_charges,
        tax=parse_amount(parts[0], "tax"),
        service_charge=parse_amount(parts[1], "service charge"),
        discount=parse_amount(parts[2], "discount") if len(parts) == 3 else None,
    )
    get_store(context).put(session)
    await update.message.reply_text(format_bill(session.bill), parse_mode="Markdown")


@reports_errors
async def cmd_join(update: Update, context: ContextTypes.DEFAULT_TYPE):
    user = update.effective_user
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill. Start one with /newbill")
        return

    if session.participant_for_user(user.id):
        await update.message.reply_text(f"{get_display_name(user)}, you're already in! 👍")
        return

    # Someone the organizer added with /addperson may be claiming their row
    if not lifecycle.claim_participant(session, get_display_name(user), user.id):
        email = command_args(update, "join") or None
        lifecycle.add_participant(session, get_display_name(user), email=email, user_id=user.id)
    get_store(context).put(session)

    await update.message.reply_text(
        f"✅ *{md(get_display_name(user))}* joined the bill!\n"
        f"👥 Participants: {len(session.participants)}",
        parse_mode="Markdown",
    )


@reports_errors
async def cmd_addperson(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    require_organizer(session, update.effective_user)

    parts = command_args(update, "addperson").split()
    if not parts:
        raise ValidationError("Usage: `/addperson Priya [priya@example.com]`")
    email = None
    if len(parts) > 1 and "@" in parts[-1] and "." in parts[-1]:
        email = parts.pop()

    participant = lifecycle.add_participant(session, " ".join(parts), email=email)
    get_store(context).put(session)
    await update.message.reply_text(
        f"👤 *{md(participant.name)}* added to the bill.\n"
        "Pick items for them with /assign, or they can /join under the same name.",
        parse_mode="Markdown",
    )


@reports_errors
async def cmd_assign(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    require_organizer(session, update.effective_user)

    parts = command_args(update, "assign").split()
    delta = 1
    if parts and parts[-1] in ("+", "-"):
        delta = 1 if parts.pop() == "+" else -1
    if len(parts) < 2:
        raise ValidationError("Usage: `/assign 2 Priya` (end with `-` to take one back)")

    item = item_by_number(session.bill, parts[0])
    name = " ".join(parts[1:])
    target = lifecycle.find_participant(session, name)
    if target is None:
        raise ValidationError(f"{md(name)} isn't in this bill.")

    qty = editing.change_selection(session, target, item.id, delta)
    get_store(context).put(session)
    await update.message.reply_text(
        f"🛒 *{md(target.name)}*: {qty} of {item.quantity} × {md(item.name)}",
        parse_mode="Markdown",
    )


@reports_errors
async def cmd_items(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill. Start one with /newbill")
        return
    if not session.bill.items:
        await update.message.reply_text("No items yet. Upload a receipt photo or use /additem")
        return
    lifecycle.ensure_open(session)

    await update.message.reply_text(
        items_text(session), parse_mode="Markdown", reply_markup=items_keyboard(session),
    )


async def submit_participant(update, context, session, participant):
    if not lifecycle.submit(session, participant):
        raise ValidationError("You've already submitted your selections.")
    get_store(context).put(session)

    chat = update.effective_chat
    await context.bot.send_message(
        chat.id,
        f"📨 *{md(participant.name)}* submitted\n" + format_selection(session, participant),
        parse_mode="Markdown",
    )
    if lifecycle.all_submitted(session):
        await context.bot.send_message(
            chat.id,
            "🎉 Everyone has submitted! Pay your share here:\n"
            f"`{payment_link(session)}`\n\nSee the breakdown with /summary",
            parse_mode="Markdown",
        )


@reports_errors
async def cmd_submit(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    participant = require_participant(session, update.effective_user)
    await submit_participant(update, context, session, participant)


@reports_errors
async def cmd_lock(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill.")
        return
    require_organizer(session, update.effective_user)

    lifecycle.lock(session, reason="organizer")
    lifecycle.cancel_lock_timer(context.job_queue, session.id)
    get_store(context).put(session)
    await update.message.reply_text(
        "🔒 Bill locked.\n\n" + format_summary(summarize_session(session)),
        parse_mode="Markdown",
    )


@reports_errors
async def cmd_summary(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session_id = command_args(update, "summary")
    if session_id:
        session = get_store(context).require(session_id.lower())
    else:
        session = load_active_session(update, context)
        if not session:
            await update.message.reply_text("No active bill. Use `/summary <id>` for a past one.",
                                            parse_mode="Markdown")
            return

    await update.message.reply_text(format_summary(summarize_session(session)), parse_mode="Markdown")


@reports_errors
async def cmd_paid(update: Update, context: ContextTypes.DEFAULT_TYPE):
    store = get_store(context)
    user = update.effective_user
    session = load_active_session(update, context)
    if not session:
        history = store.history_for_chat(update.effective_chat.id, limit=1)
        session = history[0] if history else None
    if not session:
        await update.message.reply_text("No bill to mark as paid.")
        return

    target_name = command_args(update, "paid")
    if target_name:
        require_organizer(session, user)
        target = lifecycle.find_participant(session, target_name)
        if target is None:
            raise ValidationError(f"{target_name} isn't in this bill.")
    else:
        target = require_participant(session, user)

    paid = lifecycle.toggle_paid(target)
    store.put(session)
    await update.message.reply_text(
        f"💳 *{md(target.name)}* marked as {'paid ✅' if paid else 'not paid'}",
        parse_mode="Markdown",
    )


@reports_errors
async def cmd_cancel(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        await update.message.reply_text("No active bill to cancel.")
        return
    require_organizer(session, update.effective_user)

    lifecycle.cancel_lock_timer(context.job_queue, session.id)
    get_store(context).delete(session.id)
    logger.info(f"Session {session.id} cancelled")
    await update.message.reply_text("🗑️ Bill cancelled.")


async def cmd_history(update: Update, context: ContextTypes.DEFAULT_TYPE):
    sessions = get_store(context).history_for_chat(update.effective_chat.id, limit=5)
    await update.message.reply_text(format_history(sessions), parse_mode="Markdown")


# --- Callback Query Handler ---

@reports_errors
async def callback_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    query = update.callback_query
    user = update.effective_user
    data = query.data

    session = load_active_session(update, context)
    if not session:
        await query.answer()
        await query.edit_message_text("No active bill session.")
        return

    if data == "input:photo":
        await query.answer()
        await query.edit_message_text(
            "📸 Send me a photo of the receipt!\n\n"
            "I'll extract items, tax and charges with Gemini AI.\n"
            "You can also use /additem to add items manually."
        )

    elif data == "input:manual":
        await query.answer()
        await query.edit_message_text(
            "✏️ Add items using the command:\n"
            "`/additem Item Name 2 150`\n\n"
            "Set tax and service charge with /setcharges, "
            "then everyone can /join and pick with /items.",
            parse_mode="Markdown",
        )

    elif data.startswith("sel:"):
        _, action, item_id = data.split(":", 2)
        participant = require_participant(session, user)
        item = session.bill.get_item(item_id)
        if item is None:
            raise ValidationError("Item not found.")

        if action == "show":
            qty = editing.selected_quantity(participant, item_id)
            await query.answer(f"You have {qty} of {item.quantity} × {item.name}")
            return

        before = editing.selected_quantity(participant, item_id)
        qty = editing.change_selection(session, participant, item_id, 1 if action == "inc" else -1)
        await query.answer(f"{item.name}: {qty} of {item.quantity}")
        if qty == before:
            return

        get_store(context).put(session)
        try:
            await query.edit_message_text(
                items_text(session), parse_mode="Markdown", reply_markup=items_keyboard(session),
            )
        except BadRequest as e:
            logger.debug(f"Items message not updated: {e}")

    elif data == "submit":
        participant = require_participant(session, user)
        await submit_participant(update, context, session, participant)
        await query.answer("Submitted!")

    elif data == "summary":
        await query.answer()
        await context.bot.send_message(
            update.effective_chat.id,
            format_summary(summarize_session(session)),
            parse_mode="Markdown",
        )

    else:
        await query.answer()


# --- Photo Handler (receipt) ---

@reports_errors
async def photo_handler(update: Update, context: ContextTypes.DEFAULT_TYPE):
    session = load_active_session(update, context)
    if not session:
        return
    require_organizer(session, update.effective_user)
    lifecycle.ensure_open(session)

    photo = update.message.photo[-1]
    file = await context.bot.get_file(photo.file_id)
    photo_bytes = await file.download_as_bytearray()

    msg = await update.message.reply_text("🔍 Reading receipt with Gemini AI...")
    bill = await analyze_receipt(bytes(photo_bytes), session.bill.currency)

    if bill is None:
        await msg.edit_text(
            "😕 Couldn't extract a bill from this receipt.\n\n"
            "Try a clearer photo or add items manually:\n"
            "`/additem Item Name 2 150`",
            parse_mode="Markdown",
        )
        return

    # The organizer may have closed or cancelled the bill while Gemini was busy
    store = get_store(context)
    current = store.get(session.id)
    if current is not None and lifecycle.expire_if_due(current):
        lifecycle.cancel_lock_timer(context.job_queue, current.id)
        store.put(current)
    if current is None or current.locked:
        await msg.edit_text("The bill was closed while reading the receipt, so it wasn't used.")
        return

    editing.replace_bill(current, bill)
    store.put(current)
    await msg.edit_text(
        f"✅ Extracted *{len(bill.items)}* items from the receipt:\n\n"
        + format_bill(bill)
        + "\n\nFix anything with /edititem or /setcharges, then everyone can /join and pick with /items.",
        parse_mode="Markdown",
    )


# --- Main ---

def build_application(store):
    app = Application.builder().token(BOT_TOKEN).post_init(post_init).build()
    app.bot_data["store"] = store

    app.add_handler(CommandHandler("start", cmd_help))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("newbill", cmd_newbill))
    app.add_handler(CommandHandler("currency", cmd_currency))
    app.add_handler(CommandHandler("merchant", cmd_merchant))
    app.add_handler(CommandHandler("additem", cmd_additem))
    app.add_handler(CommandHandler("edititem", cmd_edititem))
    app.add_handler(CommandHandler("removeitem", cmd_removeitem))
    app.add_handler(CommandHandler("setcharges", cmd_setcharges))
    app.add_handler(CommandHandler("join", cmd_join))
    app.add_handler(CommandHandler("addperson", cmd_addperson))
    app.add_handler(CommandHandler("assign", cmd_assign))
    app.add_handler(CommandHandler("items", cmd_items))
    app.add_handler(CommandHandler("submit", cmd_submit))
    app.add_handler(CommandHandler("lock", cmd_lock))
    app.add_handler(CommandHandler("summary", cmd_summary))
    app.add_handler(CommandHandler("paid", cmd_paid))
    app.add_handler(CommandHandler("cancel", cmd_cancel))
    app.add_handler(CommandHandler("history", cmd_history))
    app.add_handler(CallbackQueryHandler(callback_handler))
    app.add_handler(MessageHandler(filters.PHOTO, photo_handler))
    return app


def main():
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=logging.INFO,
    )

    if BOT_TOKEN == "YOUR_BOT_TOKEN_HERE":
        print("=" * 50)
        print("ERROR: Set your BOT_TOKEN!")
        print("  export BOT_TOKEN=your_token_here")
        print("=" * 50)
        return

    app = build_application(connect_store())
    logger.info("SplitShare Bot running")

    # Webhook mode for Cloud Run, polling for local dev
    if WEBHOOK_URL:
        logger.info("Starting in WEBHOOK mode on port %d", PORT)
        app.run_webhook(
            listen="0.0.0.0",
            port=PORT,
            url_path=f"/webhook/{BOT_TOKEN}",
            webhook_url=f"{WEBHOOK_URL}/webhook/{BOT_TOKEN}",
            allowed_updates=Update.ALL_TYPES,
        )
    else:
        logger.info("Starting in POLLING mode")
        app.run_polling(allowed_updates=Update.ALL_TYPES)
