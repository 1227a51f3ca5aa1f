"""Curated exclusions and renames for mods whose local identity differs from Forge."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from .model import Package

NOT_ON_CATALOG_REASON: Final[str] = "Not available on Forge"


@dataclass(slots=True, frozen=True)
class Alias:
    from_name: str
    from_author: str
    to_name: str
    to_author: str


# Server components that are not listed on Forge or are helpers of other mods.
EXCLUDED_SERVER_MODS: Final[tuple[tuple[str, str], ...]] = (
    ("server", "Fika"),
    ("Skills Extended", "dirtbikercj"),
    ("ProfileEditorHelper", "SkiTles55"),
)

# Client components shipped with the platform itself or not listed on Forge.
EXCLUDED_CLIENT_MODS: Final[tuple[tuple[str, str], ...]] = (
    ("core", "spt"),
    ("common", "spt"),
    ("debugging", "spt"),
    ("custom", "spt"),
    ("singleplayer", "spt"),
    ("core", "fika"),
    ("HideSpecialIcon", ""),
    ("RemoveTimeGateFromQuests", "Cj"),
    ("Skills Extended", "dirtbikercj"),
    ("Sense", ""),
    ("Hitmarker", ""),
    ("exfilbots", ""),
)

SERVER_ALIASES: Final[tuple[Alias, ...]] = (
    Alias("BRNVG - N-15 Adapter", "Borkel", "Borkel's Realistic Night Vision Goggles (NVGs and T-7)", "Borkel"),
    Alias("MOAR", "DewardianDev", "MOAR + Bagels - Ultra lite spawn mod", "DewardianDev"),
    Alias("MoreCheckmarksBackend", "VIP", "MoreCheckmarks", "VIPkiller17"),
    Alias("uifixes", "Tyfon", "UI Fixes", "Tyfon"),
    Alias("SAIN", "zSolarint", "SAIN - Solarint's AI Modifications - Full AI Combat System Replacement", "Solarint"),
    Alias("BOOBS", "Jehree", "Balanced Overhaul Of Bullet Spawns (BOOBS)", "Jehree"),
    Alias("OldPk06Remake", "Boogle", "Old PK-06 Restoration", "Boogle"),
    Alias("Bot Callsigns", "Helldiver, harmony", "Bot Callsigns - Reloaded", "harmony"),
    Alias("RheddElBozo - SPT Battlepass", "RheddElBozo", "SPT Battlepass", "Pluto!"),
    Alias("MarkedRoomLoot", "Valens", "Make Marked Room Loot Great Again", "Valens"),
    Alias("SVM", "GhostFenixx", "Server Value Modifier [SVM]", "GhostFenixx"),
    Alias("WTT-PackNStrap", "", "WTT - Pack 'n' Strap", "GrooveypenguinX"),
    Alias("Wisps-InfMeds", "", "INFMEDS-Update BY WispsFlame", "WispsFlame"),
    Alias("Rocka's Corner Store", "RockaHorse", "WTT - Corner Store", "rockahorse"),
    Alias("props-doorbreacher", "Props", "Backdoor Bandit", "MakerMacher"),
    Alias("ProfileEditorHelper", "SkiTles55", "SPT-AKI Profile Editor", "SkiTles55"),
    Alias("Painter - Trader", "MoxoPixel", "Painter", "MoxoPixel"),
    Alias("TraderModding", "ChooChoo", "Trader Modding And Improved Weapon Building", "ChooChoo"),
    Alias("croupier", "turbodestroyer_1337", "Croupier (random loadouts + flea quicksell)", "turbodestroyer"),
    Alias("Echoes of Tarkov - Requisitions", "RheddElBozo", "Echoes of Tarkov - Requisitions", "Pluto!"),
    Alias("Weapons", "EpicRangeTime", "Epic's All in One", "EpicRangeTime"),
    Alias("revival-mod", "KaikiNoodles", "RevivalMod: Second Chance Survival System for Single Player Tarkov", "KaikiNoodles"),
    Alias("LiveBitcoinPricesREDUX", "Shardbyte", "LiveBitcoinPricesREDUX", "AmightyTank"),
    Alias("DeDistortionizer", "zSolarint", "DeDistortionizer", "Hauzman"),
    Alias("SPT-InsuranceFraud", "DragonX86", "Insurance Fraud (Port to 3.11)", "DragonX86"),
    Alias("WeightlessAmmo", "MNSTR", "Weight-Less-Ammo", "Turok"),
    Alias("The Blacklist", "Platinum", "The Blacklist - flea market enhancements", "Platinum"),
    Alias("Wolfiks Heavy Troopers", "SerWolfik, reuploaded by AMightyTank", "Wolfik's Heavy Trooper Masks - Reupload", "AmightyTank"),
    Alias("MusicManiac-KeysInLoot", "MusicManiac", "Keys In Loot (KIL)", "MusicManiac"),
    Alias("PoseServComp", "", "More Mannequin Pose", "Choccy Milk"),
    Alias("GuidingLight", "", "Guiding Light", "LightoftheWorld"),
    Alias("AES", "Flowless", "AES (Ultimate Questing Traders)", "Flowless"),
    Alias("no-fir-hideout", "schkuromi", "No FIR Hideout", "sch_kuromi"),
    Alias("LootValueBackend", "IhanaMies", "lootvalue", "IhanaMies"),
    Alias("Adam's Boxes at Ref (BARF)", "", "Boxes at ReF (BARF)", "AcidMC"),
    Alias("shiny_airdrop_guns", "leaves", "Shiny Airdrop Guns!", "DeadLeaves"),
    Alias("ReflexSightsRework", "SamSwat", "Reflex Sights Rework - Updated", "stckytwl"),
    Alias("no-pmcbot-response", "schkuromi", "No PMC Bot Response", "sch_kuromi"),
)

CLIENT_ALIASES: Final[tuple[Alias, ...]] = (
    Alias("Graphics", "", "Amands's Graphics", "Amands2Mello"),
    Alias("FOVFix", "", "Fontaine's FOV Fix", "Fontaine"),
    Alias("TraderScrolling", "Kaeno", "Kaeno-TraderScrolling", "CWX"),
    Alias("LootingBots", "", "Looting Bots", "Skwizzy"),
    Alias("GildedKeyStorage", "DrakiaXYZ", "Gilded Key Storage", "Jehree"),
    Alias("UseLooseLoot", "SPT", "Use Loose Loot", "gaylatea"),
    Alias("FlareEventNotifier", "Terkoiz", "Exfil Flare Notification", "Terkoiz"),
    Alias("SetSpeed", "DrakiaXYZ", "Set Speed - Set Player Speed with Hotkeys", "DrakiaXYZ"),
    Alias("Zones", "VCQL", "Virtual's Custom Quest Loader", "Virtual"),
    Alias("ContinuousLoadAmmo", "", "Continuous Load Ammo", "ozen"),
    Alias("SPTLeftStanceWallFix", "", "Left Stance Wall Fix", "pein"),
    Alias("RamCleanerInterval", "", "Ram Cleaner Fix", "Devraccoon"),
    Alias("AILimit", "dvize", "Ai Limit", "wizard83"),
    Alias("RevivalMod", "", "SPT Leaderboard", "harmony"),
    Alias("Adds the Skeleton Key Item", "", "Skeleton Key", "Boogle"),
    Alias("ActuallyFoundInRaid", "privateryan", "Actually Found In Raid (UPDATED)", "RuKira"),
    Alias("LootValue", "IhanaMies", "lootvalue", "IhanaMies"),
    Alias("Dynamic External Resolution", "", "Dynamic External Resolution Patch (DERP) 3.11 port", "Sh1ba"),
    Alias("UnderFire", "rpmwpm", "UnderFire - An Adrenaline Effect", "rpmwpm"),
    Alias("DeHazardifier", "Tetris", "DeHazardifier - Updated by Tetris", "TetrisGG"),
)


def _same(left: str, right: str) -> bool:
    return left.casefold() == right.casefold()


def search_identity(package: Package) -> tuple[str, str]:
    """Return the (name, author) to search the catalog with, applying known renames."""

    aliases = SERVER_ALIASES if package.is_server_component else CLIENT_ALIASES
    for alias in aliases:
        if _same(alias.from_name, package.local_name) and _same(
            alias.from_author, package.local_author
        ):
            return alias.to_name, alias.to_author
    return package.local_name, package.local_author


def is_excluded(package: Package) -> bool:
    """Return whether the package is known to be absent from the catalog."""

    excluded = EXCLUDED_SERVER_MODS if package.is_server_component else EXCLUDED_CLIENT_MODS
    identities = {(package.local_name, package.local_author), search_identity(package)}
    return any(
        _same(name, excluded_name) and _same(author, excluded_author)
        for name, author in identities
        for excluded_name, excluded_author in excluded
    )
