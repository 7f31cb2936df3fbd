"""
User-facing text, per locale. Templates use str.format placeholders.
"""

EN_US = {
    "incomingCall.title": "📞 Incoming call",
    "incomingCall.description": "There is an incoming call from `{number}`. Pick up or hang up using the buttons below.\nCall ID: `{call_id}`",
    "pickup": "Pick up",
    "hangup": "Hang up",

    "pickedUp.toSide.title": "✅ You picked up the call",
    "pickedUp.toSide.description": "You are now talking to the other side. Use `/hangup` to end the call.\nCall ID: `{call_id}`",
    "pickedUp.fromSide.title": "✅ The other side picked up",
    "pickedUp.fromSide.description": "You are now connected. Use `/hangup` to end the call.\nCall ID: `{call_id}`",

    "missedCall.toSide.title": "📵 Missed call",
    "missedCall.toSide.description": "You missed a call.",
    "missedCall.fromSide.title": "📵 No answer",
    "missedCall.fromSide.description": "The other side didn't pick up.",
    "answeringMachine": "Answering machine",
    "mailboxFull": "(Mailbox full)",
    "sendMessage": "Send a message",

    "dontTrustStrangers": "Don't trust files sent by strangers.",

    "hangup.title": "☎️ Call ended",
    "hangup.pickedUp.thisSide": "You hung up the call. It lasted {time}.\nCall ID: `{call_id}`",
    "hangup.pickedUp.otherSide": "The other side hung up. The call lasted {time}.\nCall ID: `{call_id}`",
    "hangup.notPickedUp.thisSide": "You hung up before the call was answered ({time}).\nCall ID: `{call_id}`",
    "hangup.notPickedUp.otherSide": "The other side hung up before the call was answered ({time}).\nCall ID: `{call_id}`",

    "hold.held.title": "⏳ Call held",
    "hold.resumed.title": "⏳ Call resumed",
    "hold.thisSide.held": "You have put the call on hold. Use `/hold` to resume the call.",
    "hold.otherSide.held": "The other side have put you on hold. Please wait...",
    "hold.thisSide.released": "You have released the hold on this call.",
    "hold.otherSide.released": "The other side have ended the hold!",

    "numberLost.title": "☎️ Call ended",
    "numberLost.description": "The other side could no longer be reached, so the call was ended.\nCall ID: `{call_id}`",

    "errors.title": "❌ Error!",
    "errors.couldntReachOtherSide": "Couldn't reach the other side. Please try again later.",
    "errors.messageDeleted": "The other side deleted this message.",
    "errors.numberInvalid": "That number is not valid.",
    "errors.callingSelf": "You can't call yourself.",
    "errors.invalidFrom": "This channel doesn't have a number.",
    "errors.thisSideExpired": "Your number has expired. Renew it to make calls.",
    "errors.otherSideNotFound": "That number doesn't exist.",
    "errors.otherSideExpired": "That number has expired.",
    "errors.otherSideBlockedYou": "That number has blocked you.",
    "errors.thisSideInCall": "This channel is already in a call.",
    "errors.otherSideInCall": "That number is already in a call.",
    "errors.numberMissingChannel": "That number's channel can't be found.",
    "errors.holdNotPickedUp": "You can't hold a call that hasn't been picked up yet!",
    "errors.holdNotYours": "You can't release the hold if you didn't start it!",
    "errors.cantPickupOwnCall": "You can't pick up a call you started.",
    "errors.callNotFound": "That call doesn't exist.",
    "errors.notInCall": "This channel is not in a call.",
    "errors.numberLost": "One side of this call no longer exists.",

    "duration.seconds": "a few seconds",
    "duration.minute": "a minute",
    "duration.minutes": "{count} minutes",
    "duration.hour": "an hour",
    "duration.hours": "{count} hours",
}

ES_ES = {
    "incomingCall.title": "📞 Llamada entrante",
    "incomingCall.description": "Hay una llamada entrante de `{number}`. Contesta o cuelga con los botones.\nID de llamada: `{call_id}`",
    "pickup": "Contestar",
    "hangup": "Colgar",
    "missedCall.toSide.title": "📵 Llamada perdida",
    "missedCall.toSide.description": "Has perdido una llamada.",
    "missedCall.fromSide.title": "📵 Sin respuesta",
    "missedCall.fromSide.description": "El otro lado no contestó.",
    "hangup.title": "☎️ Llamada finalizada",
    "errors.title": "❌ ¡Error!",
    "errors.messageDeleted": "El otro lado borró este mensaje.",
}

LOCALES = {
    "en-US": EN_US,
    "es-ES": ES_ES,
}
